import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from statement_importer.api.dependencies import get_engine
from statement_importer.api.schemas import (
    CandidateRowOut,
    CommitRequest,
    CommitRow,
    CommitResponse,
    PreviewRequest,
    PreviewResponse,
)
from statement_importer.domain.columns import infer_column_mapping
from statement_importer.domain.csv_table import CSVReadError, read_csv
from statement_importer.domain.merchants import normalize_merchant
from statement_importer.engine import ImportMatchingEngine
from statement_importer.logger import get_logger
from statement_importer.models import ImportKind
from statement_importer.services.session import remember_row_mapping
from statement_importer.stores.base import RuleStore

logger = get_logger(__name__)

router = APIRouter(prefix="/imports")


@router.post("/preview", response_model=PreviewResponse)
async def preview_import(
    req: PreviewRequest,
    engine: Annotated[ImportMatchingEngine, Depends(get_engine)],
) -> PreviewResponse:
    try:
        table = read_csv(req.csv_text)
    except CSVReadError as e:
        logger.info(f"[IMPORT] Rejected upload for workspace {req.workspace_id}: {e}")
        raise HTTPException(status_code=422, detail=str(e)) from e

    mapping = req.mapping or infer_column_mapping(table.headers)
    try:
        rows = await engine.abuild_rows(
            table,
            mapping,
            req.workspace_id,
            duplicate_hints=req.duplicate_hints,
            categories=req.categories,
        )
    except ValueError as e:  # ColumnMappingError or mismatched duplicate_hints
        raise HTTPException(status_code=422, detail=str(e)) from e

    counts: dict[str, int] = {}
    for row in rows:
        counts[row.bucket.value] = counts.get(row.bucket.value, 0) + 1

    return PreviewResponse(
        headers=table.headers,
        mapping=mapping,
        rows=[CandidateRowOut.from_row(row) for row in rows],
        bucket_counts=counts,
    )


def _learn_mappings(store: RuleStore, workspace_id: str, rows: list[CommitRow]) -> list[str]:
    learned: list[str] = []
    for row in rows:
        category = row.selected_category if row.kind == ImportKind.EXPENSE else None
        # Client-supplied keys are re-normalized before they become rule keys
        for key in remember_row_mapping(
            store,
            workspace_id,
            normalize_merchant(row.source_merchant_key),
            normalize_merchant(row.description_merchant_key),
            row.merchant,
            category,
        ):
            if key not in learned:
                learned.append(key)
    return learned


@router.post("/commit", response_model=CommitResponse)
async def commit_import(
    req: CommitRequest,
    engine: Annotated[ImportMatchingEngine, Depends(get_engine)],
) -> CommitResponse:
    imported = expenses = incomes = 0
    to_learn: list[CommitRow] = []
    for row in req.rows:
        if not row.include_in_import or not row.merchant.strip():
            continue
        if row.kind == ImportKind.EXPENSE and row.selected_category is None:
            continue

        imported += 1
        if row.kind == ImportKind.EXPENSE:
            expenses += 1
        else:
            incomes += 1

        if row.remember_mapping:
            to_learn.append(row)

    learned = await asyncio.to_thread(_learn_mappings, engine.store, req.workspace_id, to_learn)

    logger.info(
        f"[IMPORT] Commit for workspace {req.workspace_id}: {imported} imported, {len(learned)} key(s) learned."
    )
    return CommitResponse(
        imported=imported,
        expenses=expenses,
        incomes=incomes,
        skipped=len(req.rows) - imported,
        learned_keys=learned,
    )
