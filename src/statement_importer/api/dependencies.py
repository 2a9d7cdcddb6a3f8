from fastapi import HTTPException, Request

from statement_importer.engine import ImportMatchingEngine
from statement_importer.stores.base import RuleStore


def get_store(request: Request) -> RuleStore:
    store = getattr(request.app.state, "store", None)
    if not store:
        raise HTTPException(status_code=500, detail="Rule store not initialized")
    return store


def get_engine(request: Request) -> ImportMatchingEngine:
    engine = getattr(request.app.state, "engine", None)
    if not engine:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return engine
