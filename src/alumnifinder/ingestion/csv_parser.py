"""Quote-aware CSV parsing for the spreadsheet export.

The export is loosely structured: quoted fields may hold commas, doubled
quotes and raw newlines, and line endings vary. A single character scan
handles all of these without relying on the export being well-formed.
"""

from __future__ import annotations

from typing import List


def normalize_newlines(text: str) -> str:
    """Convert ``\\r\\n`` and lone ``\\r`` line endings to ``\\n``."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_csv(text: str) -> List[List[str]]:
    """Split raw CSV text into rows of fields.

    A ``"`` toggles quoting, except that ``""`` inside a quoted field emits a
    single literal quote. Commas and newlines only act as separators outside
    quotes. A trailing field or row without a final newline is still returned.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    field: List[str] = []
    in_quotes = False

    clean = normalize_newlines(text)
    i = 0
    n = len(clean)
    while i < n:
        ch = clean[i]
        if ch == '"':
            if in_quotes and i + 1 < n and clean[i + 1] == '"':
                field.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            row.append("".join(field))
            field = []
        elif ch == "\n" and not in_quotes:
            row.append("".join(field))
            rows.append(row)
            row = []
            field = []
        else:
            field.append(ch)
        i += 1

    if field or row:
        row.append("".join(field))
        rows.append(row)

    return rows
