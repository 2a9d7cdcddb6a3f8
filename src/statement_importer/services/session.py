from dataclasses import dataclass, field
from uuid import UUID

from statement_importer.domain.rows import ImportCandidateRow
from statement_importer.engine import DuplicateDetector, ImportMatchingEngine
from statement_importer.logger import get_logger
from statement_importer.models import Category, ImportBucket, ImportKind
from statement_importer.stores.base import RuleStore

logger = get_logger(__name__)


@dataclass
class CommitResult:
    imported: list[ImportCandidateRow] = field(default_factory=list)
    learned_keys: list[str] = field(default_factory=list)

    @property
    def expense_count(self) -> int:
        return sum(1 for row in self.imported if row.kind == ImportKind.EXPENSE)

    @property
    def income_count(self) -> int:
        return sum(1 for row in self.imported if row.kind == ImportKind.INCOME)


def same_category(a: Category | None, b: Category | None) -> bool:
    if a is None or b is None:
        return False
    if a.id is not None and b.id is not None:
        return a.id == b.id
    return a.name.strip().lower() == b.name.strip().lower()


def remember_row_mapping(
    store: RuleStore,
    workspace_id: str,
    source_key: str,
    description_key: str,
    preferred_name: str | None,
    category: Category | None,
) -> list[str]:
    """Upsert a rule under the source key and, when it differs, the description key.

    Returns the keys that were written.
    """
    name = (preferred_name or "").strip() or None
    primary = source_key.strip()
    secondary = description_key.strip()

    learned: list[str] = []
    for key in (primary, secondary):
        if not key or key in learned:
            continue
        if store.upsert(key, name, category, workspace_id) is not None:
            learned.append(key)
    return learned


def bucket_for_expense_row(row: ImportCandidateRow, ready_threshold: float) -> ImportBucket:
    """Bucket for a row that just became an expense.

    A user-picked category that differs from the suggestion counts as resolved.
    """
    if row.is_duplicate_hint:
        return ImportBucket.POSSIBLE_DUPLICATE
    if row.selected_category is None:
        return ImportBucket.NEEDS_MORE_DATA
    if same_category(row.suggested_category, row.selected_category):
        if row.suggested_confidence >= ready_threshold:
            return ImportBucket.READY
        return ImportBucket.POSSIBLE_MATCH
    return ImportBucket.READY


class ImportSession:
    """Caller-side review of one import.

    Every edit goes through ``recompute_bucket`` on the edited row; nothing
    writes to the rule store until ``commit``.
    """

    def __init__(
        self,
        engine: ImportMatchingEngine,
        rows: list[ImportCandidateRow],
        workspace_id: str,
        *,
        duplicate_detector: DuplicateDetector | None = None,
    ):
        self.engine = engine
        self.rows = rows
        self.workspace_id = workspace_id
        self.duplicate_detector = duplicate_detector
        self._by_id = {row.id: row for row in rows}

    def row(self, row_id: UUID) -> ImportCandidateRow:
        try:
            return self._by_id[row_id]
        except KeyError:
            raise KeyError(f"Unknown import row {row_id}") from None

    def rows_in(self, bucket: ImportBucket) -> list[ImportCandidateRow]:
        return [row for row in self.rows if row.bucket == bucket]

    def importable_rows(self) -> list[ImportCandidateRow]:
        return [
            row for row in self.rows if row.include_in_import and not row.is_missing_required_data
        ]

    def _refresh_duplicate(self, row: ImportCandidateRow) -> None:
        if self.duplicate_detector is None:
            return
        row.is_duplicate_hint = bool(
            self.duplicate_detector(row.final_date, row.final_amount, row.final_merchant)
        )

    def set_category(self, row_id: UUID, category: Category | None) -> ImportCandidateRow:
        row = self.row(row_id)
        row.selected_category = category
        self._refresh_duplicate(row)
        row.recompute_bucket()
        return row

    def set_merchant(self, row_id: UUID, merchant: str) -> ImportCandidateRow:
        row = self.row(row_id)
        row.final_merchant = merchant
        self._refresh_duplicate(row)
        row.recompute_bucket()
        return row

    def set_duplicate_hint(self, row_id: UUID, is_duplicate: bool) -> ImportCandidateRow:
        row = self.row(row_id)
        row.is_duplicate_hint = is_duplicate
        row.recompute_bucket()
        return row

    def set_kind(self, row_id: UUID, kind: ImportKind) -> ImportCandidateRow:
        row = self.row(row_id)
        if row.kind == kind:
            return row

        was_included = row.include_in_import
        row.kind = kind
        self._refresh_duplicate(row)
        if kind == ImportKind.INCOME:
            row.selected_category = None
            row.bucket = ImportBucket.PAYMENT
        else:
            if row.selected_category is None:
                row.selected_category = row.suggested_category
            row.bucket = bucket_for_expense_row(row, self.engine.ready_threshold)

        can_include = not row.is_missing_required_data and not row.is_duplicate_hint
        include_default = row.bucket in (ImportBucket.READY, ImportBucket.PAYMENT)
        row.include_in_import = can_include and (was_included or include_default)
        row.recompute_bucket()
        return row

    def toggle_include(self, row_id: UUID) -> ImportCandidateRow:
        row = self.row(row_id)
        if row.is_missing_required_data:
            row.include_in_import = False
            return row
        row.include_in_import = not row.include_in_import
        return row

    def toggle_remember(self, row_id: UUID) -> ImportCandidateRow:
        row = self.row(row_id)
        row.remember_mapping = not row.remember_mapping
        return row

    def commit(self) -> CommitResult:
        """Hand back the importable rows and learn the mappings the user asked for.

        Income rows learn the preferred name only.
        """
        result = CommitResult(imported=self.importable_rows())
        for row in result.imported:
            if not row.remember_mapping:
                continue
            category = row.selected_category if row.kind == ImportKind.EXPENSE else None
            for key in remember_row_mapping(
                self.engine.store,
                self.workspace_id,
                row.source_merchant_key,
                row.description_merchant_key,
                row.final_merchant,
                category,
            ):
                if key not in result.learned_keys:
                    result.learned_keys.append(key)

        logger.info(
            "[IMPORT] Committed %d expense(s) and %d income row(s); learned %d rule key(s) for workspace %s.",
            result.expense_count,
            result.income_count,
            len(result.learned_keys),
            self.workspace_id,
        )
        return result
