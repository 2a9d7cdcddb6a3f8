from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from statement_importer.domain.columns import ColumnMapping
from statement_importer.domain.merchants import display_name
from statement_importer.domain.rows import ImportCandidateRow
from statement_importer.models import Category, ImportBucket, ImportKind


class PreviewRequest(BaseModel):
    csv_text: str
    workspace_id: str
    mapping: ColumnMapping | None = None
    duplicate_hints: list[bool] | None = None
    categories: list[Category] | None = None


class CandidateRowOut(BaseModel):
    id: UUID
    source_line: int
    transaction_date: date | None
    merchant: str
    display_merchant: str
    amount: Decimal
    kind: ImportKind
    bucket: ImportBucket
    suggested_category: Category | None = None
    suggested_confidence: float = 0.0
    match_reason: str = ""
    selected_category: Category | None = None
    include_in_import: bool = False
    remember_mapping: bool = False
    is_duplicate_hint: bool = False
    is_missing_required_data: bool = False
    source_merchant_key: str
    description_merchant_key: str

    @classmethod
    def from_row(cls, row: ImportCandidateRow) -> "CandidateRowOut":
        return cls(
            id=row.id,
            source_line=row.source_line,
            transaction_date=row.final_date,
            merchant=row.final_merchant,
            display_merchant=display_name(row.final_merchant),
            amount=row.final_amount,
            kind=row.kind,
            bucket=row.bucket,
            suggested_category=row.suggested_category,
            suggested_confidence=row.suggested_confidence,
            match_reason=row.match_reason,
            selected_category=row.selected_category,
            include_in_import=row.include_in_import,
            remember_mapping=row.remember_mapping,
            is_duplicate_hint=row.is_duplicate_hint,
            is_missing_required_data=row.is_missing_required_data,
            source_merchant_key=row.source_merchant_key,
            description_merchant_key=row.description_merchant_key,
        )


class PreviewResponse(BaseModel):
    headers: list[str]
    mapping: ColumnMapping
    rows: list[CandidateRowOut]
    bucket_counts: dict[str, int]


class CommitRow(BaseModel):
    """The reviewed state of one row as the client last saw it."""

    source_merchant_key: str
    description_merchant_key: str = ""
    merchant: str
    kind: ImportKind = ImportKind.EXPENSE
    selected_category: Category | None = None
    include_in_import: bool = True
    remember_mapping: bool = False


class CommitRequest(BaseModel):
    workspace_id: str
    rows: list[CommitRow] = Field(default_factory=list)


class CommitResponse(BaseModel):
    imported: int
    expenses: int
    incomes: int
    skipped: int
    learned_keys: list[str]


class RuleUpsertRequest(BaseModel):
    merchant_key: str
    preferred_name: str | None = None
    preferred_category: Category | None = None
