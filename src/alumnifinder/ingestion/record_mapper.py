"""Map parsed CSV rows onto :class:`Alumnus` records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from alumnifinder.models import FIELDS, Alumnus
from alumnifinder.utils.text import normalize_header

LOGGER = logging.getLogger(__name__)

# Normalized header -> Alumnus field. Several spellings may share a field.
COLUMN_MAP: Dict[str, str] = {
    "BAC": "bac",
    "NOM": "nom",
    "PRENOM": "prenom",
    "TEL": "tel",
    "E_MAIL": "email",
    "EMAIL": "email",
    "CELL": "cell",
    "DATENAISS": "date_naiss",
    "LIEUNAISS": "lieu_naiss",
    "SEXE": "sexe",
    "VILLE": "ville",
    "PAYS": "pays",
    "PR": "pr",
    "ETUDES": "etudes",
    "PROFESSION": "profession",
}

BAC_PREFIX = re.compile(r"^BAC\s*", re.IGNORECASE)
# Longer values, or values with commas, come from shifted columns.
BAC_MAX_LENGTH = 15


@dataclass(slots=True)
class MappingStats:
    rows: int = 0
    kept: int = 0
    skipped: int = 0
    dropped: int = 0


def clean_bac(value: str) -> str:
    """Strip the ``BAC`` label and discard values that look mis-parsed."""
    value = BAC_PREFIX.sub("", value, count=1)
    if len(value) > BAC_MAX_LENGTH or "," in value:
        return ""
    return value


def map_headers(header_row: Sequence[str]) -> List[Optional[str]]:
    """Return the target field for each header column, ``None`` when unknown."""
    return [COLUMN_MAP.get(normalize_header(cell)) for cell in header_row]


def map_row(row_index: int, columns: Sequence[Optional[str]], row: Sequence[str]) -> Optional[Alumnus]:
    """Build one record, or ``None`` when the row fails the inclusion rule."""
    values: Dict[str, str] = {}
    has_data = False
    for index, key in enumerate(columns):
        if key is None or index >= len(row):
            continue
        value = row[index].strip()
        if key == "bac":
            value = clean_bac(value)
        values[key] = value
        if value:
            has_data = True

    if not has_data or not values.get("nom"):
        return None
    return Alumnus(id=f"row-{row_index}", **{name: values.get(name, "") for name in FIELDS})


def map_records(rows: Sequence[Sequence[str]], stats: MappingStats | None = None) -> List[Alumnus]:
    """Convert parsed rows (header first) into records.

    Rows with one field or fewer are structural noise and are skipped. Record
    ids come from the row position so identical input always yields identical
    ids.
    """
    if stats is None:
        stats = MappingStats()
    if len(rows) < 2:
        return []

    columns = map_headers(rows[0])
    if not any(columns):
        LOGGER.warning("No recognised column headers in %s", list(rows[0]))

    records: List[Alumnus] = []
    for row_index in range(1, len(rows)):
        row = rows[row_index]
        stats.rows += 1
        if len(row) <= 1:
            stats.skipped += 1
            continue
        record = map_row(row_index, columns, row)
        if record is None:
            stats.dropped += 1
            continue
        records.append(record)
        stats.kept += 1

    LOGGER.debug(
        "Mapped %d rows: kept %d, skipped %d, dropped %d",
        stats.rows,
        stats.kept,
        stats.skipped,
        stats.dropped,
    )
    return records
