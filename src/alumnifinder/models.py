"""Core alumnifinder data models."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Literal

ContactMode = Literal["contact", "report"]

FIELDS = (
    "bac",
    "nom",
    "prenom",
    "tel",
    "email",
    "cell",
    "date_naiss",
    "lieu_naiss",
    "sexe",
    "ville",
    "pays",
    "pr",
    "etudes",
    "profession",
)


@dataclass(frozen=True, slots=True)
class Alumnus:
    """One directory entry. Every attribute is a string, possibly empty."""

    id: str
    bac: str = ""
    nom: str = ""
    prenom: str = ""
    tel: str = ""
    email: str = ""
    cell: str = ""
    date_naiss: str = ""
    lieu_naiss: str = ""
    sexe: str = ""
    ville: str = ""
    pays: str = ""
    pr: str = ""
    etudes: str = ""
    profession: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.nom} {self.prenom}"

    @property
    def display_name(self) -> str:
        """Given name plus family initial, as shown in result listings."""
        initial = f"{self.nom[0].upper()}." if self.nom else ""
        return f"{self.prenom} {initial}".strip()


@dataclass(frozen=True, slots=True)
class SearchFilters:
    """User-entered criteria. Blank fields impose no constraint."""

    query: str = ""
    bac: str = ""
    pays: str = ""
    profession: str = ""
    etudes: str = ""
    lieu_naiss: str = ""


@dataclass(frozen=True, slots=True)
class RateWindow:
    """Persisted outbound message counter.

    ``start_time`` is in epoch milliseconds and is serialized under the
    ``startTime`` key.
    """

    count: int
    start_time: int

    @classmethod
    def fresh(cls, now_ms: int) -> "RateWindow":
        return cls(count=0, start_time=now_ms)

    @classmethod
    def from_json(cls, raw: str) -> "RateWindow":
        """Parse a stored window, raising ``ValueError`` on any malformed input."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid rate window JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("Rate window must be a JSON object")
        count = data.get("count")
        start_time = data.get("startTime")
        for value in (count, start_time):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError("Rate window fields must be numbers")
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError("Rate window fields must be finite")
        if count < 0:
            raise ValueError("Rate window count must not be negative")
        return cls(count=int(count), start_time=int(start_time))

    def to_json(self) -> str:
        return json.dumps({"count": self.count, "startTime": self.start_time})

    def expired(self, now_ms: int, window_ms: int) -> bool:
        return now_ms - self.start_time >= window_ms


@dataclass(frozen=True, slots=True)
class ContactRequest:
    """Sender details and message body for an outbound submission."""

    sender_name: str
    sender_email: str
    message: str

    def __post_init__(self) -> None:
        for name in ("sender_name", "sender_email", "message"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} must not be empty")
