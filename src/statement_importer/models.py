from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class ImportKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class ImportBucket(str, Enum):
    READY = "ready"
    POSSIBLE_MATCH = "possibleMatch"
    PAYMENT = "payment"
    POSSIBLE_DUPLICATE = "possibleDuplicate"
    NEEDS_MORE_DATA = "needsMoreData"


class Category(BaseModel):
    name: str
    id: str | None = None # Workspace entity ID, resolved by the caller


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportMerchantRule(BaseModel):
    """Learned preference for one merchant key within one workspace."""

    merchant_key: str
    workspace_id: str
    preferred_name: str | None = None
    preferred_category: Category | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("merchant_key")
    @classmethod
    def _key_not_blank(cls, value: str) -> str:
        key = value.strip()
        if not key:
            raise ValueError("merchant_key must not be empty")
        return key
