import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from statement_importer.api.dependencies import get_store
from statement_importer.api.schemas import RuleUpsertRequest
from statement_importer.domain.merchants import normalize_merchant
from statement_importer.models import ImportMerchantRule
from statement_importer.stores.base import RuleStore

router = APIRouter(prefix="/rules")


@router.get("/{workspace_id}", response_model=list[ImportMerchantRule])
async def list_rules(
    workspace_id: str,
    store: Annotated[RuleStore, Depends(get_store)],
) -> list[ImportMerchantRule]:
    rules = await asyncio.to_thread(store.fetch_all, workspace_id)
    return [rules[key] for key in sorted(rules)]


@router.put("/{workspace_id}", response_model=ImportMerchantRule | None)
async def upsert_rule(
    workspace_id: str,
    req: RuleUpsertRequest,
    store: Annotated[RuleStore, Depends(get_store)],
) -> ImportMerchantRule | None:
    # Raw merchant text is accepted; stored keys are always normalized.
    key = normalize_merchant(req.merchant_key)
    return await asyncio.to_thread(
        store.upsert, key, req.preferred_name, req.preferred_category, workspace_id
    )
