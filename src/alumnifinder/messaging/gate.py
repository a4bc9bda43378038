"""Daily quota gate in front of the message relay.

The gate persists a :class:`RateWindow` under :data:`STORAGE_KEY` and allows
at most ``limit`` dispatched messages per window. A window expires
``window_ms`` after its start and is then replaced by a fresh one rather than
decremented.

The read-modify-write on the store is not atomic. Two sessions sharing the
same store can both pass the check before either records its send, so the
limit may be exceeded by a few messages under contention.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from alumnifinder.config import DAILY_LIMIT, STORAGE_KEY
from alumnifinder.index.storage import StateStore
from alumnifinder.messaging.relay import RelayClient, RelayConnectionError, build_payload
from alumnifinder.models import Alumnus, ContactMode, ContactRequest, RateWindow

LOGGER = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

CONNECTION_FAILURE_MESSAGE = "A connection error occurred. Please try again later."


class GateStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    SUCCESS = "success"
    ERROR = "error"


class GateErrorKind(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    CONNECTION_FAILURE = "connection_failure"


class InvalidTransition(Exception):
    """Raised when an action is not allowed from the current status."""


@dataclass(frozen=True, slots=True)
class GateOutcome:
    status: GateStatus
    error_kind: GateErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is GateStatus.SUCCESS


def quota_message(limit: int, window_ms: int = DAY_MS) -> str:
    hours = max(window_ms // HOUR_MS, 1)
    unit = "hour" if hours == 1 else "hours"
    return f"Daily limit of {limit} messages reached. Please try again in {hours} {unit}."


class OutboundMessageGate:
    """Authorizes, dispatches and counts outbound messages."""

    def __init__(
        self,
        store: StateStore,
        relay: RelayClient,
        *,
        limit: int = DAILY_LIMIT,
        window_ms: int = DAY_MS,
        key: str = STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.relay = relay
        self.limit = limit
        self.window_ms = window_ms
        self.key = key
        self.clock = clock
        self.status = GateStatus.IDLE
        self.error_kind: GateErrorKind | None = None
        self.error_message = ""

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def current_window(self, now_ms: int | None = None) -> RateWindow:
        """Load the stored window; missing, corrupt or expired state reads as fresh."""
        if now_ms is None:
            now_ms = self._now_ms()
        raw = self.store.get(self.key)
        if raw is None:
            return RateWindow.fresh(now_ms)
        try:
            window = RateWindow.from_json(raw)
        except ValueError as exc:
            LOGGER.debug("Discarding unreadable rate window %r: %s", raw, exc)
            return RateWindow.fresh(now_ms)
        if window.expired(now_ms, self.window_ms):
            return RateWindow.fresh(now_ms)
        return window

    def check_quota(self, now_ms: int | None = None) -> RateWindow | None:
        """Return the window to increment, or ``None`` when the quota is used up."""
        window = self.current_window(now_ms)
        if window.count >= self.limit:
            return None
        return window

    def remaining(self) -> int:
        return max(self.limit - self.current_window().count, 0)

    def _record_dispatch(self, window: RateWindow) -> None:
        count = window.count + 1
        start_time = self._now_ms() if count == 1 else window.start_time
        self.store.set(self.key, RateWindow(count=count, start_time=start_time).to_json())

    def _fail(self, kind: GateErrorKind, message: str) -> GateOutcome:
        self.status = GateStatus.ERROR
        self.error_kind = kind
        self.error_message = message
        return self.outcome

    @property
    def outcome(self) -> GateOutcome:
        return GateOutcome(self.status, self.error_kind, self.error_message)

    def submit(self, alumnus: Alumnus, request: ContactRequest, mode: ContactMode = "contact") -> GateOutcome:
        if self.status is not GateStatus.IDLE:
            raise InvalidTransition(f"Cannot submit while {self.status.value}")

        window = self.check_quota()
        if window is None:
            LOGGER.warning("Daily message quota of %d reached", self.limit)
            return self._fail(GateErrorKind.QUOTA_EXCEEDED, quota_message(self.limit, self.window_ms))

        self.status = GateStatus.SENDING
        self.error_kind = None
        self.error_message = ""
        try:
            self.relay.send(build_payload(alumnus, request, mode))
        except RelayConnectionError:
            return self._fail(GateErrorKind.CONNECTION_FAILURE, CONNECTION_FAILURE_MESSAGE)
        except Exception:
            self._fail(GateErrorKind.CONNECTION_FAILURE, CONNECTION_FAILURE_MESSAGE)
            raise

        self._record_dispatch(window)
        self.status = GateStatus.SUCCESS
        LOGGER.info("Dispatched %s message about %s", mode, alumnus.id)
        return self.outcome

    def retry(self) -> None:
        if self.status is not GateStatus.ERROR:
            raise InvalidTransition(f"Cannot retry while {self.status.value}")
        self.close()

    def close(self) -> None:
        """Discard the per-submission state."""
        self.status = GateStatus.IDLE
        self.error_kind = None
        self.error_message = ""
