"""Session record set, loaded once and replaced as a whole."""

from __future__ import annotations

import logging
from typing import Iterator, Tuple

from alumnifinder.ingestion.fetcher import DatasetFetcher
from alumnifinder.ingestion.record_mapper import MappingStats
from alumnifinder.models import Alumnus

LOGGER = logging.getLogger(__name__)


class Directory:
    """Holds the records of the most recent completed fetch.

    Readers always see a complete tuple: :meth:`load` builds the new set
    first and swaps the reference afterwards.
    """

    def __init__(self, fetcher: DatasetFetcher) -> None:
        self.fetcher = fetcher
        self._records: Tuple[Alumnus, ...] = ()
        self.loaded = False

    @property
    def records(self) -> Tuple[Alumnus, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Alumnus]:
        return iter(self._records)

    def load(self) -> MappingStats:
        """Fetch the dataset and replace the current record set."""
        records = tuple(self.fetcher.fetch())
        stats = self.fetcher.last_stats
        self._records = records
        self.loaded = True
        LOGGER.info(
            "Directory holds %d records (%d rows read, %d skipped, %d dropped)",
            len(records),
            stats.rows,
            stats.skipped,
            stats.dropped,
        )
        return stats

    def ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    def get(self, record_id: str) -> Alumnus | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None
