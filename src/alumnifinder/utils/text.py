"""Text helpers for header matching and free-text comparison."""

from __future__ import annotations

import re

_HEADER_STRIP = re.compile(r"[^A-Z0-9_]")


def normalize_header(header: str) -> str:
    """Upper-case a header cell and drop everything but ``A-Z``, digits and ``_``.

    ``"E-Mail"``, ``"EMAIL"`` and ``" e_mail "`` become ``"EMAIL"``, ``"EMAIL"``
    and ``"E_MAIL"``. Accented letters are dropped too, so ``"Prénom"`` gives
    ``"PRNOM"``.
    """
    return _HEADER_STRIP.sub("", header.upper())


def contains_folded(haystack: str, needle: str) -> bool:
    """Case-insensitive substring test."""
    return needle.lower() in (haystack or "").lower()

