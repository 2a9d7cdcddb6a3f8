import os

from statement_importer.core import settings
from statement_importer.logger import get_logger

from .base import RuleStore
from .json_store import JsonRuleStore
from .sql_store import SqlRuleStore

logger = get_logger(__name__)


def create_rule_store(backend: str | None = None, data_dir: str | None = None) -> RuleStore:
    backend = backend or settings.get_rule_store_backend()
    if backend == "sql":
        database_url = settings.get_database_url()
        logger.info("[RULES] Using SQL rule store.")
        return SqlRuleStore(database_url)

    data_dir = data_dir or settings.get_data_dir()
    settings.ensure_dir(data_dir)
    path = os.path.join(data_dir, settings.RULES_FILENAME)
    logger.info(f"[RULES] Using JSON rule store at {path}")
    return JsonRuleStore(data_path=path)
