import pytest

from statement_importer.domain.columns import (
    ColumnMapping,
    ColumnMappingError,
    ColumnRole,
    infer_column_mapping,
)

HEADERS = ["Date", "Description", "Amount", "Category"]


def test_resolve_exact_and_case_insensitive():
    mapping = ColumnMapping(date="date", description="Description", amount="AMOUNT")
    assert mapping.resolve(HEADERS) == {
        ColumnRole.DATE: 0,
        ColumnRole.DESCRIPTION: 1,
        ColumnRole.AMOUNT: 2,
    }

def test_unknown_header_is_a_mapping_error():
    mapping = ColumnMapping(description="Description", amount="Amount", category="Kategorie")
    with pytest.raises(ColumnMappingError, match="Kategorie"):
        mapping.resolve(HEADERS)

def test_mapping_needs_text_and_amount_columns():
    with pytest.raises(ColumnMappingError):
        ColumnMapping(amount="Amount").resolve(HEADERS)
    with pytest.raises(ColumnMappingError):
        ColumnMapping(description="Description").resolve(HEADERS)

def test_debit_credit_satisfy_amount_requirement():
    headers = ["Posted", "Payee", "Debit", "Credit"]
    mapping = ColumnMapping(description="Payee", debit="Debit", credit="Credit")
    assert mapping.resolve(headers)[ColumnRole.CREDIT] == 3

def test_blank_assignment_is_ignored():
    mapping = ColumnMapping(description="Description", amount="Amount", merchant="  ")
    assert ColumnRole.MERCHANT not in mapping.assigned()

def test_infer_common_headers():
    mapping = infer_column_mapping(["Transaction Date", "Description", "Amount", "Category", "Type"])
    assert mapping.date == "Transaction Date"
    assert mapping.description == "Description"
    assert mapping.amount == "Amount"
    assert mapping.category == "Category"
    assert mapping.type == "Type"
    assert mapping.merchant is None

def test_infer_debit_credit_export():
    mapping = infer_column_mapping(["Posted Date", "Payee", "Withdrawal", "Deposit"])
    assert mapping.date == "Posted Date"
    assert mapping.description == "Payee"
    assert mapping.debit == "Withdrawal"
    assert mapping.credit == "Deposit"
    assert mapping.amount is None
