from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

DateParser = Callable[[str], date | None]

DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
)

_CURRENCY_SYMBOLS = "$€£¥"


def parse_amount(raw: str | None) -> Decimal:
    """Parse an export amount into a signed ``Decimal``.

    Accepts a leading sign, a currency symbol, thousands separators and
    accounting parentheses in any order ("-($1,234.56)" is -1234.56).
    Raises ``ValueError`` for blank or non-numeric input.
    """
    if raw is None:
        raise ValueError("amount is required")
    s = raw.replace("\u00a0", " ").strip()
    if not s:
        raise ValueError("amount is empty")
    negative = False

    # Strip sign, currency symbol and parentheses until stable so any
    # ordering of these markers is handled.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    # Trailing minus ("12.50-") shows up in some card exports.
    if s.endswith("-"):
        negative = True
        s = s[:-1].rstrip()

    s = s.replace(",", "").replace(" ", "")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -abs(d) if negative else d


def parse_date(raw: str | None) -> date | None:
    """Default date parser: ISO first, then US month/day forms.

    Callers with other conventions pass their own ``DateParser`` to the engine.
    """
    s = (raw or "").strip()
    if not s:
        return None
    # Drop a trailing time component ("01/31/2024 10:15", "2024-01-31T10:15:00")
    first = s.split()[0].split("T", 1)[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(first, fmt).date()
        except ValueError:
            continue
    return None
