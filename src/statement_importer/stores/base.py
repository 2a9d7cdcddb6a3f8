from abc import ABC, abstractmethod
from datetime import datetime, timezone

from statement_importer.models import Category, ImportMerchantRule, utcnow


class RuleStore(ABC):
    """Per-workspace merchant key -> learned preference mapping.

    Implementations serialize writes: ``upsert`` is a lookup followed by a
    write and must never create two rules for the same key.
    """

    @abstractmethod
    def fetch_all(self, workspace_id: str) -> dict[str, ImportMerchantRule]:
        """Every rule of the workspace keyed by merchant key (blank keys skipped)."""
        pass

    @abstractmethod
    def get(self, workspace_id: str, merchant_key: str) -> ImportMerchantRule | None:
        pass

    @abstractmethod
    def upsert(
        self,
        merchant_key: str,
        preferred_name: str | None,
        preferred_category: Category | None,
        workspace_id: str,
    ) -> ImportMerchantRule | None:
        """Create or update the rule for ``merchant_key``.

        A blank key is ignored and returns ``None``.
        """
        pass


def refreshed_timestamp(previous: datetime | None) -> datetime:
    """Now, but never earlier than the timestamp being replaced."""
    now = utcnow()
    if previous is None:
        return now
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=timezone.utc)
    return max(now, previous)


def clean_name(preferred_name: str | None) -> str | None:
    if preferred_name is None:
        return None
    name = preferred_name.strip()
    return name or None
