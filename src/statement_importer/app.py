from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from statement_importer.api.routes import imports, rules
from statement_importer.core import settings
from statement_importer.engine import ImportMatchingEngine
from statement_importer.logger import get_logger, setup_logging
from statement_importer.stores.factory import create_rule_store

logger = get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        store = create_rule_store()
        engine = ImportMatchingEngine(store)

        app.state.store = store
        app.state.engine = engine

        logger.info(
            "Services initialized (ready threshold %.2f, fuzzy threshold %.0f, sign convention %s).",
            engine.ready_threshold,
            engine.fuzzy_threshold,
            engine.sign_convention.value,
        )
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="Statement Importer", lifespan=lifespan)

    app.include_router(imports.router)
    app.include_router(rules.router)

    return app


app = create_app()
