import re
from decimal import Decimal
from enum import Enum

from statement_importer.models import ImportKind

# Card payments and transfers into the card account. These are neither
# spending nor earnings, so they get their own review bucket.
PAYMENT_RE = re.compile(
    r"\b(?:payments?|autopay|auto[- ]pay|thank you|transfer to card|balance transfer)\b",
    re.IGNORECASE,
)
REFUND_RE = re.compile(r"\b(?:refunds?|reversal|returned|return credit)\b", re.IGNORECASE)

_TYPE_EXPENSE = ("purchase", "debit", "fee", "interest", "sale")
_TYPE_INCOME = ("payment", "credit", "refund", "reversal", "return")


class SignConvention(str, Enum):
    # Card exports: both signs appear for purchases; sign alone never means income
    CARD = "card"
    # Bank exports: positive is money in, negative is money out
    BANK = "bank"


def is_payment(description: str | None, category: str | None, type_text: str | None = None) -> bool:
    for text in (category, description, type_text):
        if text and PAYMENT_RE.search(text):
            return True
    return False


def kind_from_type(type_text: str | None) -> ImportKind | None:
    t = (type_text or "").strip().lower()
    if not t:
        return None
    if any(word in t for word in _TYPE_EXPENSE):
        return ImportKind.EXPENSE
    if any(word in t for word in _TYPE_INCOME):
        return ImportKind.INCOME
    return None


def classify_kind(
    *,
    amount: Decimal,
    description: str | None,
    category: str | None,
    type_text: str | None = None,
    from_credit_column: bool = False,
    convention: SignConvention = SignConvention.CARD,
) -> tuple[ImportKind, bool]:
    """Return ``(kind, is_payment)`` for one row.

    Payment rows are income-kind so they never require a category.
    """
    if is_payment(description, category, type_text):
        return ImportKind.INCOME, True

    explicit = kind_from_type(type_text)
    if explicit is not None:
        return explicit, False

    if from_credit_column:
        return ImportKind.INCOME, False

    for text in (description, category):
        if text and REFUND_RE.search(text):
            return ImportKind.INCOME, False

    if convention == SignConvention.BANK and amount > 0:
        return ImportKind.INCOME, False
    return ImportKind.EXPENSE, False
