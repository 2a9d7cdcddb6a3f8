from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from statement_importer.models import Category, ImportBucket, ImportKind


@dataclass(frozen=True)
class RowProvenance:
    """What the source line said, plus the matching keys derived from it."""

    source_line: int
    date_text: str
    description_text: str
    merchant_text: str | None
    amount_text: str
    category_text: str | None
    source_merchant_key: str
    description_merchant_key: str
    # Mapped fields that could not be parsed, e.g. ("amount",)
    invalid_fields: tuple[str, ...] = ()


@dataclass
class ImportCandidateRow:
    """One proposed transaction awaiting review.

    ``provenance`` never changes. Everything else is the editable projection;
    edits go through ``recompute_bucket`` so the review state stays consistent.
    """

    provenance: RowProvenance
    final_date: date | None
    final_merchant: str
    final_amount: Decimal
    kind: ImportKind
    suggested_category: Category | None = None
    suggested_confidence: float = 0.0
    match_reason: str = ""
    selected_category: Category | None = None
    remember_mapping: bool = False
    include_in_import: bool = False
    is_duplicate_hint: bool = False
    bucket: ImportBucket = ImportBucket.NEEDS_MORE_DATA
    id: UUID = field(default_factory=uuid4)

    @property
    def source_line(self) -> int:
        return self.provenance.source_line

    @property
    def source_merchant_key(self) -> str:
        return self.provenance.source_merchant_key

    @property
    def description_merchant_key(self) -> str:
        return self.provenance.description_merchant_key

    @property
    def is_missing_required_data(self) -> bool:
        if self.provenance.invalid_fields:
            return True
        if not self.final_merchant.strip():
            return True
        return self.kind == ImportKind.EXPENSE and self.selected_category is None

    def recompute_bucket(self) -> None:
        """Re-apply the duplicate and missing-data rules after any edit.

        Idempotent. Beyond these two checks the bucket stays where it is, so a
        row does not jump between review lists while it is being edited.
        """
        if self.is_duplicate_hint:
            self.bucket = ImportBucket.POSSIBLE_DUPLICATE
            self.include_in_import = False
            return

        if self.is_missing_required_data:
            self.include_in_import = False
