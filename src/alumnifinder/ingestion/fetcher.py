"""Retrieve the directory spreadsheet and turn it into records."""

from __future__ import annotations

import logging
from typing import List

import httpx

from alumnifinder.ingestion.csv_parser import parse_csv
from alumnifinder.ingestion.record_mapper import MappingStats, map_records
from alumnifinder.models import Alumnus

LOGGER = logging.getLogger(__name__)


class DatasetFormatError(Exception):
    """Raised when the source returns markup instead of CSV."""


def looks_like_html(text: str) -> bool:
    """Detect an HTML page, which is what the sheet serves when sharing is off."""
    return text.strip().lower().startswith("<!doctype html") or "<html" in text


class DatasetFetcher:
    """Best-effort loader: any failure yields an empty list."""

    def __init__(self, url: str, *, timeout: float = 15.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client
        self.last_stats = MappingStats()

    def _download(self) -> str:
        if self._client is not None:
            response = self._client.get(self.url, timeout=self.timeout)
        else:
            with httpx.Client(follow_redirects=True) as client:
                response = client.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    def fetch(self) -> List[Alumnus]:
        self.last_stats = MappingStats()
        try:
            text = self._download()
            if looks_like_html(text):
                raise DatasetFormatError(
                    "Received HTML instead of CSV. Make sure the sheet is shared "
                    "with 'Anyone with the link' as 'Viewer'."
                )
            records = map_records(parse_csv(text), self.last_stats)
        except (httpx.HTTPError, DatasetFormatError) as exc:
            LOGGER.error("Failed to fetch directory data from %s: %s", self.url, exc)
            return []
        except Exception:  # pragma: no cover - defensive
            LOGGER.exception("Unexpected error while loading %s", self.url)
            return []

        if not records:
            LOGGER.warning("Directory source %s produced no records", self.url)
        else:
            LOGGER.info("Loaded %d records from %s", len(records), self.url)
        return records
