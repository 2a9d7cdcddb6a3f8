import json
import os
import threading

from pydantic import ValidationError

from statement_importer.logger import get_logger
from statement_importer.models import Category, ImportMerchantRule

from .base import RuleStore, clean_name, refreshed_timestamp

logger = get_logger(__name__)


class JsonRuleStore(RuleStore):
    """Rules kept in memory and mirrored to a JSON file.

    ``data_path=None`` keeps everything in memory, which is what tests and
    throwaway sessions want.
    """

    def __init__(self, data_path: str | None = "import_rules.json"):
        self.data_path = data_path
        self._lock = threading.RLock()
        self.rules: dict[str, dict[str, ImportMerchantRule]] = {} # workspace -> key -> rule
        self.load()

    def load(self) -> None:
        if not self.data_path or not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"[RULES] Could not read {self.data_path}, starting empty: {e}")
            raw = {}

        loaded: dict[str, dict[str, ImportMerchantRule]] = {}
        skipped = 0
        for workspace_id, entries in (raw.items() if isinstance(raw, dict) else []):
            if not isinstance(entries, dict):
                continue
            bucket = loaded.setdefault(workspace_id, {})
            for payload in entries.values():
                try:
                    rule = ImportMerchantRule.model_validate(payload)
                except ValidationError:
                    skipped += 1
                    continue
                bucket[rule.merchant_key] = rule
        if skipped:
            logger.warning(f"[RULES] Skipped {skipped} invalid rule(s) in {self.data_path}")

        with self._lock:
            self.rules = loaded

    def save(self) -> None:
        if not self.data_path:
            return
        payload = {
            workspace_id: {key: rule.model_dump(mode="json") for key, rule in entries.items()}
            for workspace_id, entries in self.rules.items()
        }
        tmp_path = f"{self.data_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, self.data_path)

    def fetch_all(self, workspace_id: str) -> dict[str, ImportMerchantRule]:
        with self._lock:
            entries = self.rules.get(workspace_id, {})
            return {
                key: rule.model_copy(deep=True)
                for key, rule in entries.items()
                if key.strip()
            }

    def get(self, workspace_id: str, merchant_key: str) -> ImportMerchantRule | None:
        key = merchant_key.strip()
        with self._lock:
            rule = self.rules.get(workspace_id, {}).get(key)
            return rule.model_copy(deep=True) if rule else None

    def upsert(
        self,
        merchant_key: str,
        preferred_name: str | None,
        preferred_category: Category | None,
        workspace_id: str,
    ) -> ImportMerchantRule | None:
        key = merchant_key.strip()
        if not key:
            logger.debug("[RULES] Ignoring upsert with blank merchant key.")
            return None

        with self._lock:
            entries = self.rules.setdefault(workspace_id, {})
            existing = entries.get(key)
            rule = ImportMerchantRule(
                merchant_key=key,
                workspace_id=workspace_id,
                preferred_name=clean_name(preferred_name),
                preferred_category=preferred_category,
                updated_at=refreshed_timestamp(existing.updated_at if existing else None),
            )
            entries[key] = rule
            self.save()
            logger.debug(
                "[RULES] %s rule '%s' in workspace %s",
                "Updated" if existing else "Created",
                key,
                workspace_id,
            )
            return rule.model_copy(deep=True)
