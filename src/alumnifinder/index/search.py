"""Free-text filtering over the in-memory directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from alumnifinder.models import Alumnus, SearchFilters
from alumnifinder.utils.text import contains_folded

# SearchFilters field -> Alumnus field, matched by substring.
ATTRIBUTE_FILTERS = ("bac", "pays", "profession", "etudes", "lieu_naiss")


def matches(value: str, criterion: str) -> bool:
    """Empty criteria always match, otherwise a trimmed case-insensitive substring test."""
    if not criterion:
        return True
    return contains_folded(value, criterion.strip())


def matches_query(alumnus: Alumnus, query: str) -> bool:
    """General query: name (either order) or city."""
    if not query:
        return True
    return (
        contains_folded(f"{alumnus.prenom} {alumnus.nom}", query)
        or contains_folded(f"{alumnus.nom} {alumnus.prenom}", query)
        or contains_folded(alumnus.ville, query)
    )


def filter_records(records: Iterable[Alumnus], filters: SearchFilters) -> List[Alumnus]:
    """Return the records matching every active criterion, in input order."""
    return [
        record
        for record in records
        if matches_query(record, filters.query)
        and all(matches(getattr(record, name), getattr(filters, name)) for name in ATTRIBUTE_FILTERS)
    ]


@dataclass(slots=True)
class SearchResult:
    id: str
    display_name: str
    bac: str

    @classmethod
    def from_alumnus(cls, alumnus: Alumnus) -> "SearchResult":
        return cls(id=alumnus.id, display_name=alumnus.display_name, bac=alumnus.bac)


class Searcher:
    """High-level API to query a loaded record set."""

    def __init__(self, records: Sequence[Alumnus]) -> None:
        self.records = records

    def search(self, filters: SearchFilters, *, limit: int | None = None) -> List[SearchResult]:
        hits = filter_records(self.records, filters)
        if limit is not None:
            hits = hits[:limit]
        return [SearchResult.from_alumnus(hit) for hit in hits]
