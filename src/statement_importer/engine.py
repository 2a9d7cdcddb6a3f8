import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal

from statement_importer.core import settings
from statement_importer.domain.columns import ColumnMapping, ColumnRole
from statement_importer.domain.csv_table import ParsedTable
from statement_importer.domain.fields import DateParser, parse_amount, parse_date
from statement_importer.domain.merchants import normalize_merchant
from statement_importer.domain.rows import ImportCandidateRow, RowProvenance
from statement_importer.logger import get_logger
from statement_importer.matching.categories import suggest_category
from statement_importer.matching.kinds import SignConvention, classify_kind
from statement_importer.matching.rules import LearnedRuleMatcher
from statement_importer.models import Category, ImportBucket, ImportKind
from statement_importer.stores.base import RuleStore

logger = get_logger(__name__)

DuplicateDetector = Callable[[date | None, Decimal, str], bool]

REASON_LEARNED = "Matched learned rule"
REASON_NO_MATCH = "No learned match — review required"
REASON_MISSING_DATA = "Missing required data"


class ImportMatchingEngine:
    """Turns a parsed export into candidate rows ready for review.

    The rule store is read once per ``build_rows`` call; every row is then
    matched against that snapshot, so per-row work is pure.
    """

    def __init__(
        self,
        store: RuleStore,
        *,
        ready_threshold: float | None = None,
        fuzzy_threshold: float | None = None,
        sign_convention: SignConvention | str | None = None,
        date_parser: DateParser | None = None,
    ):
        self.store = store
        self.ready_threshold = (
            ready_threshold if ready_threshold is not None else settings.get_ready_threshold()
        )
        self.fuzzy_threshold = (
            fuzzy_threshold if fuzzy_threshold is not None else settings.get_fuzzy_match_threshold()
        )
        self.sign_convention = SignConvention(sign_convention or settings.get_sign_convention())
        self.date_parser = date_parser or parse_date

    def build_rows(
        self,
        table: ParsedTable,
        mapping: ColumnMapping,
        workspace_id: str,
        *,
        duplicate_hints: Sequence[bool] | None = None,
        duplicate_detector: DuplicateDetector | None = None,
        categories: list[Category] | None = None,
    ) -> list[ImportCandidateRow]:
        columns = mapping.resolve(table.headers)
        if duplicate_hints is not None and len(duplicate_hints) != len(table.rows):
            raise ValueError(
                f"duplicate_hints has {len(duplicate_hints)} entries for {len(table.rows)} rows"
            )

        matcher = LearnedRuleMatcher(self.store.fetch_all(workspace_id), self.fuzzy_threshold)
        logger.info(
            "[IMPORT] Building %d row(s) for workspace %s against %d learned rule(s).",
            len(table.rows),
            workspace_id,
            len(matcher.rules),
        )

        rows: list[ImportCandidateRow] = []
        for index, fields in enumerate(table.rows):
            # Header is line 1
            row = self._build_row(index + 2, fields, columns, matcher, categories)
            if duplicate_hints is not None:
                row.is_duplicate_hint = bool(duplicate_hints[index])
            elif duplicate_detector is not None:
                row.is_duplicate_hint = bool(
                    duplicate_detector(row.final_date, row.final_amount, row.final_merchant)
                )
            row.recompute_bucket()
            rows.append(row)

        if logger.isEnabledFor(logging.DEBUG):
            counts: dict[str, int] = {}
            for row in rows:
                counts[row.bucket.value] = counts.get(row.bucket.value, 0) + 1
            logger.debug("[IMPORT] Bucket counts: %s", counts)
        return rows

    async def abuild_rows(
        self,
        table: ParsedTable,
        mapping: ColumnMapping,
        workspace_id: str,
        **kwargs,
    ) -> list[ImportCandidateRow]:
        return await asyncio.to_thread(self.build_rows, table, mapping, workspace_id, **kwargs)

    def _build_row(
        self,
        source_line: int,
        fields: list[str],
        columns: dict[ColumnRole, int],
        matcher: LearnedRuleMatcher,
        categories: list[Category] | None,
    ) -> ImportCandidateRow:
        def text(role: ColumnRole) -> str | None:
            index = columns.get(role)
            return fields[index] if index is not None else None

        description = text(ColumnRole.DESCRIPTION) or ""
        merchant = text(ColumnRole.MERCHANT)
        category_text = text(ColumnRole.CATEGORY)
        type_text = text(ColumnRole.TYPE)
        date_text = text(ColumnRole.DATE) or ""

        description_key = normalize_merchant(description)
        if merchant is not None and merchant.strip():
            source_key = normalize_merchant(merchant)
        else:
            source_key = description_key

        invalid: list[str] = []
        amount_text, amount, from_credit = self._read_amount(text)
        if amount is None:
            invalid.append("amount")
            amount = Decimal("0")

        final_date = None
        if date_text.strip():
            try:
                final_date = self.date_parser(date_text)
            except ValueError:
                final_date = None
            if final_date is None:
                invalid.append("date")

        provenance = RowProvenance(
            source_line=source_line,
            date_text=date_text,
            description_text=description,
            merchant_text=merchant,
            amount_text=amount_text,
            category_text=category_text,
            source_merchant_key=source_key,
            description_merchant_key=description_key,
            invalid_fields=tuple(invalid),
        )

        match = matcher.match(source_key, description_key)
        final_merchant = source_key
        if match is not None and match.rule.preferred_name:
            final_merchant = match.rule.preferred_name

        # A rule without a category only renames; the category comes from the miss path
        if match is not None and match.rule.preferred_category is not None:
            suggested = match.rule.preferred_category
            confidence = match.confidence
            if match.source == "exact":
                reason = REASON_LEARNED
            else:
                reason = f"Similar to learned rule '{match.matched_key}'"
        else:
            suggested = None
            confidence = 0.0
            reason = REASON_NO_MATCH
            if categories:
                suggestion = suggest_category(category_text, categories)
                if suggestion is not None:
                    suggested = suggestion.category
                    confidence = suggestion.confidence
                    reason = suggestion.reason

        kind, payment = classify_kind(
            amount=amount,
            description=description,
            category=category_text,
            type_text=type_text,
            from_credit_column=from_credit,
            convention=self.sign_convention,
        )

        if invalid:
            bucket = ImportBucket.NEEDS_MORE_DATA
            reason = REASON_MISSING_DATA
        elif payment or kind == ImportKind.INCOME:
            bucket = ImportBucket.PAYMENT
        elif confidence > 0 and confidence >= self.ready_threshold:
            bucket = ImportBucket.READY
        elif confidence > 0:
            bucket = ImportBucket.POSSIBLE_MATCH
        else:
            bucket = ImportBucket.NEEDS_MORE_DATA

        return ImportCandidateRow(
            provenance=provenance,
            final_date=final_date,
            final_merchant=final_merchant,
            final_amount=amount,
            kind=kind,
            suggested_category=suggested,
            suggested_confidence=confidence,
            match_reason=reason,
            selected_category=suggested if kind == ImportKind.EXPENSE else None,
            include_in_import=bucket in (ImportBucket.READY, ImportBucket.PAYMENT),
            bucket=bucket,
        )

    @staticmethod
    def _read_amount(text: Callable[[ColumnRole], str | None]) -> tuple[str, Decimal | None, bool]:
        """Return ``(raw text, signed amount or None, came from credit column)``.

        A single amount column wins when it holds a value. Otherwise a debit
        value is money out (negative) and a credit value money in.
        """
        amount_text = text(ColumnRole.AMOUNT)
        if amount_text is not None and amount_text.strip():
            try:
                return amount_text, parse_amount(amount_text), False
            except ValueError:
                return amount_text, None, False

        zero_text = None
        for role, from_credit in ((ColumnRole.DEBIT, False), (ColumnRole.CREDIT, True)):
            raw = text(role)
            if raw is None or not raw.strip():
                continue
            try:
                value = abs(parse_amount(raw))
            except ValueError:
                return raw, None, from_credit
            if value == 0:
                zero_text = raw
                continue
            return raw, (value if from_credit else -value), from_credit

        if zero_text is not None:
            return zero_text, Decimal("0"), False
        return amount_text or "", None, False
