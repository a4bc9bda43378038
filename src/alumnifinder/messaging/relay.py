"""Fire-and-forget client for the message relay script.

The relay redirects across origins, so a browser can only reach it in
``no-cors`` mode and never sees the reply. This client keeps that contract:
the response is discarded unread, and a completed request only means the
message was dispatched, not that the relay accepted it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

import httpx

from alumnifinder.models import Alumnus, ContactMode, ContactRequest

LOGGER = logging.getLogger(__name__)

REPORT_MARKER = "[SIGNALEMENT]"
REPORT_REASON = "Motif : erreur ou information obsolète dans la fiche."


class RelayConnectionError(Exception):
    """Raised when the request could not be dispatched at all."""


def build_payload(alumnus: Alumnus, request: ContactRequest, mode: ContactMode = "contact") -> Dict[str, Any]:
    message = request.message
    if mode == "report":
        message = f"{REPORT_MARKER}\n{REPORT_REASON}\n\n{message}"

    payload: Dict[str, Any] = {
        "senderName": request.sender_name,
        "senderEmail": request.sender_email,
        "message": message,
        "alumniName": alumnus.full_name,
        "alumniBac": alumnus.bac or "N/A",
    }
    if mode == "report":
        payload["type"] = "report"
    return payload


class RelayClient:
    def __init__(self, url: str, *, timeout: float = 15.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    def send(self, payload: Dict[str, Any]) -> None:
        """POST the payload as ``text/plain`` JSON, which needs no preflight."""
        body = json.dumps(payload)
        headers = {"Content-Type": "text/plain"}
        try:
            if self._client is not None:
                self._client.post(self.url, content=body, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(follow_redirects=True) as client:
                    client.post(self.url, content=body, headers=headers, timeout=self.timeout)
        except httpx.RequestError as exc:
            LOGGER.error("Relay request to %s failed: %s", self.url, exc)
            raise RelayConnectionError(str(exc)) from exc
        LOGGER.info("Relay request dispatched to %s", self.url)
