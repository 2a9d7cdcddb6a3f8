from decimal import Decimal

import pytest

from statement_importer.matching.kinds import SignConvention, classify_kind, is_payment, kind_from_type
from statement_importer.models import ImportKind


@pytest.mark.parametrize("description", [
    "AUTOPAY PAYMENT - THANK YOU",
    "Online payment, thank you",
    "Credit card payment",
    "AUTO-PAY 0123",
    "Transfer to card ending 1234",
])
def test_payment_descriptions(description):
    assert is_payment(description, None)
    assert classify_kind(amount=Decimal("100"), description=description, category=None) == (
        ImportKind.INCOME,
        True,
    )

def test_payment_from_category_column():
    assert is_payment("CHASE", "Payments and Credits")

def test_payment_needs_word_boundary():
    assert not is_payment("REPAYMENTSHOP", None)

def test_card_convention_ignores_sign():
    kind, payment = classify_kind(amount=Decimal("25"), description="STARBUCKS", category=None)
    assert kind == ImportKind.EXPENSE
    assert payment is False
    kind, _ = classify_kind(amount=Decimal("-25"), description="STARBUCKS", category=None)
    assert kind == ImportKind.EXPENSE

def test_bank_convention_positive_is_income():
    kind, _ = classify_kind(
        amount=Decimal("2500"), description="ACME PAYROLL", category=None, convention=SignConvention.BANK
    )
    assert kind == ImportKind.INCOME
    kind, _ = classify_kind(
        amount=Decimal("-40"), description="SHELL OIL", category=None, convention=SignConvention.BANK
    )
    assert kind == ImportKind.EXPENSE

def test_refund_and_credit_column_are_income():
    assert classify_kind(amount=Decimal("10"), description="REFUND AMAZON", category=None)[0] == ImportKind.INCOME
    assert classify_kind(
        amount=Decimal("10"), description="AMAZON", category=None, from_credit_column=True
    )[0] == ImportKind.INCOME

def test_type_column_checked_before_sign_and_refund():
    kind, _ = classify_kind(
        amount=Decimal("10"),
        description="REFUND DESK PURCHASE",
        category=None,
        type_text="Sale",
        convention=SignConvention.BANK,
    )
    assert kind == ImportKind.EXPENSE

@pytest.mark.parametrize("type_text, expected", [
    ("Sale", ImportKind.EXPENSE),
    ("Fee", ImportKind.EXPENSE),
    ("Return", ImportKind.INCOME),
    ("CREDIT", ImportKind.INCOME),
    ("", None),
    ("Adjustment", None),
])
def test_kind_from_type(type_text, expected):
    assert kind_from_type(type_text) == expected
