from enum import Enum

from pydantic import BaseModel


class ColumnMappingError(ValueError):
    """The column mapping names headers the file does not have."""


class ColumnRole(str, Enum):
    DATE = "date"
    DESCRIPTION = "description"
    MERCHANT = "merchant"
    AMOUNT = "amount"
    CATEGORY = "category"
    DEBIT = "debit"
    CREDIT = "credit"
    TYPE = "type"


class ColumnMapping(BaseModel):
    """Caller-supplied assignment of header names to column roles."""

    date: str | None = None
    description: str | None = None
    merchant: str | None = None
    amount: str | None = None
    category: str | None = None
    debit: str | None = None
    credit: str | None = None
    type: str | None = None

    def assigned(self) -> dict[ColumnRole, str]:
        return {
            role: header
            for role in ColumnRole
            if (header := getattr(self, role.value)) is not None and header.strip()
        }

    def resolve(self, headers: list[str]) -> dict[ColumnRole, int]:
        """Map each assigned role to its column index.

        Header names match exactly first, then case-insensitively.
        """
        assigned = self.assigned()
        if not any(role in assigned for role in (ColumnRole.DESCRIPTION, ColumnRole.MERCHANT)):
            raise ColumnMappingError("Map at least a description or merchant column.")
        if not any(role in assigned for role in (ColumnRole.AMOUNT, ColumnRole.DEBIT, ColumnRole.CREDIT)):
            raise ColumnMappingError("Map an amount column (or debit/credit columns).")

        lowered = [header.strip().lower() for header in headers]
        resolved: dict[ColumnRole, int] = {}
        missing: list[str] = []
        for role, header in assigned.items():
            wanted = header.strip()
            if wanted in headers:
                resolved[role] = headers.index(wanted)
            elif wanted.lower() in lowered:
                resolved[role] = lowered.index(wanted.lower())
            else:
                missing.append(f"{role.value}={header!r}")
        if missing:
            raise ColumnMappingError("Unknown columns in mapping: " + ", ".join(missing))
        return resolved


# Keyword order matters: the first header containing a keyword wins.
_ROLE_KEYWORDS: tuple[tuple[ColumnRole, tuple[str, ...]], ...] = (
    (ColumnRole.DATE, ("transaction date", "date", "posted")),
    (ColumnRole.DESCRIPTION, ("description", "details", "memo", "name", "payee")),
    (ColumnRole.MERCHANT, ("merchant",)),
    (ColumnRole.AMOUNT, ("amount", "amt", "value", "total")),
    (ColumnRole.DEBIT, ("debit", "withdrawal", "outflow", "charge")),
    (ColumnRole.CREDIT, ("credit", "deposit", "inflow")),
    (ColumnRole.CATEGORY, ("category", "classification")),
    (ColumnRole.TYPE, ("transaction type", "type")),
)


def infer_column_mapping(headers: list[str]) -> ColumnMapping:
    """Guess a mapping from common export header names.

    A convenience for callers without a saved mapping; the engine itself only
    ever uses the mapping it is given.
    """
    lowered = [header.strip().lower() for header in headers]
    taken: set[int] = set()
    values: dict[str, str] = {}
    for role, keywords in _ROLE_KEYWORDS:
        for keyword in keywords:
            index = next(
                (i for i, name in enumerate(lowered) if keyword in name and i not in taken),
                None,
            )
            if index is not None:
                values[role.value] = headers[index]
                taken.add(index)
                break
    return ColumnMapping(**values)
