import re

# Longest first so "card purchase" wins over shorter candidates.
BANK_PREFIXES = (
    "card purchase",
    "mastercard",
    "purchase",
    "online",
    "debit",
    "visa",
    "pos",
)

# "**1234", "##4821", "XXXX1234", "*X*X99"
_MASKED_SYMBOL_RE = re.compile(r"(?=[*#xX]{2})[xX]*[*#][*#xX]*\d{2,4}")
_MASKED_X_RE = re.compile(r"(?<![A-Za-z])[xX]{2,}\d{2,4}")
# Standalone 4-digit token, optionally marked "#4821" / "*4821"
_CARD_SUFFIX_RE = re.compile(r"(?<!\S)[#*]?\d{4}(?!\S)")
_STATE_ZIP_RE = re.compile(r"\s*\b[A-Za-z]{2}\s+\d{5}(?:-\d{4})?\s*$")
_WHITESPACE_RE = re.compile(r"\s+")

_HONORIFICS = {"MR", "MRS", "MS", "DR"}


def _strip_prefixes(value: str) -> str:
    out = value
    while True:
        lower = out.lower()
        for prefix in BANK_PREFIXES:
            if lower.startswith(prefix + " "):
                out = out[len(prefix):].strip()
                break
        else:
            return out


def _strip_noise(value: str) -> str:
    out = _strip_prefixes(value.strip())
    out = _MASKED_SYMBOL_RE.sub(" ", out)
    out = _MASKED_X_RE.sub(" ", out)
    out = _CARD_SUFFIX_RE.sub(" ", out)
    out = _STATE_ZIP_RE.sub("", out)
    return _WHITESPACE_RE.sub(" ", out).strip()


def normalize_merchant(raw: str | None) -> str:
    """Return the uppercase matching key for a merchant/description string.

    Never fails and never returns an empty key for non-blank input: when every
    token is noise the trimmed raw text is used instead. The stripping passes
    run until nothing changes, so ``normalize_merchant`` is idempotent.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return ""

    # Uppercase inside the loop; case mapping can turn one char into ASCII letters
    current = trimmed.upper()
    while True:
        stripped = _strip_noise(current).upper()
        if stripped == current:
            break
        current = stripped

    return current or trimmed.upper()


def _title_word(word: str) -> str:
    # Short all-caps tokens are usually acronyms (IRS, CVS, 7-11)
    if (
        len(word) <= 4
        and word not in _HONORIFICS
        and all(ch.isupper() or ch.isdigit() or ch == "-" for ch in word)
    ):
        return word
    if "-" in word:
        return "-".join(_title_word(part) for part in word.split("-"))
    lowered = word.lower()
    return lowered[:1].upper() + lowered[1:]


def display_name(raw: str | None) -> str:
    """Title-cased rendering of the merchant key, for people rather than lookups."""
    key = normalize_merchant(raw)
    return " ".join(_title_word(word) for word in key.split(" ") if word)
