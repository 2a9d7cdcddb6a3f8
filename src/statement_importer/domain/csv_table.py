"""Tokenize bank/card CSV exports into a header row plus equal-width rows.

Each non-blank line is split on its own: a comma outside quotes ends a
field, a double quote anywhere in a field toggles quoting, and ``""`` inside
quotes is a literal quote. A quote left open runs to the end of its line; it
never swallows the following line. Whitespace is kept as is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from os import PathLike

from statement_importer.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_ENCODINGS = ("utf-8-sig", "latin-1")


class CSVReadError(Exception):
    """The source could not be turned into a table; the import stops."""


class CSVUnreadableError(CSVReadError):
    pass


class CSVEmptyError(CSVReadError):
    pass


@dataclass(frozen=True)
class ParsedTable:
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.headers)


def decode_source(source: bytes | str) -> str:
    if isinstance(source, str):
        text = source
    elif isinstance(source, (bytes, bytearray)):
        text = None
        for encoding in SUPPORTED_ENCODINGS:
            try:
                text = bytes(source).decode(encoding)
                break
            except UnicodeDecodeError:
                continue
        if text is None:
            raise CSVUnreadableError("File content is not valid text.")
    else:
        raise CSVUnreadableError(f"Unsupported source type: {type(source).__name__}")

    # NUL characters only show up in binary files (spreadsheets, archives).
    if "\x00" in text:
        raise CSVUnreadableError("File content looks binary, not CSV text.")
    return text


def split_line(line: str) -> list[str]:
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == '"':
            if in_quotes and line[i + 1 : i + 2] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    fields.append("".join(current))
    return fields


def fit_width(fields: list[str], width: int) -> list[str]:
    if len(fields) == width:
        return fields
    if len(fields) > width:
        return fields[:width]
    return fields + [""] * (width - len(fields))


def read_csv(source: bytes | str) -> ParsedTable:
    """Parse raw CSV content.

    Raises ``CSVUnreadableError`` when the content cannot be decoded as text
    and ``CSVEmptyError`` when no non-blank line remains.
    """
    text = decode_source(source)
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise CSVEmptyError("File has no usable lines.")

    headers = [header.strip() for header in split_line(lines[0])]
    width = len(headers)
    rows = [fit_width(split_line(line), width) for line in lines[1:]]

    logger.debug("[CSV] Parsed %d columns and %d data rows.", width, len(rows))
    return ParsedTable(headers=headers, rows=rows)


def read_csv_file(path: str | PathLike[str]) -> ParsedTable:
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise CSVUnreadableError(f"Could not read {path}: {exc}") from exc
    return read_csv(data)
