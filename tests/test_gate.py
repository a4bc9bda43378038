"""Tests for the outbound message gate."""

from __future__ import annotations

import json
from unittest.mock import Mock

import httpx
import pytest

from alumnifinder.config import STORAGE_KEY
from alumnifinder.index.storage import MemoryStateStore, SQLiteStateStore
from alumnifinder.messaging.gate import (
    DAY_MS,
    GateErrorKind,
    GateStatus,
    InvalidTransition,
    OutboundMessageGate,
)
from alumnifinder.messaging.relay import RelayClient, RelayConnectionError
from alumnifinder.models import Alumnus, ContactRequest, RateWindow

NOW = 1_700_000_000.0
NOW_MS = int(NOW * 1000)
RELAY_URL = "https://relay.example.org/exec"


class FakeClock:
    def __init__(self, start: float = NOW) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def alumnus() -> Alumnus:
    return Alumnus(id="row-1", nom="Dupont", prenom="Jean", bac="1999")


@pytest.fixture
def contact() -> ContactRequest:
    return ContactRequest(sender_name="Marie", sender_email="marie@example.org", message="Bonjour")


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def relay() -> Mock:
    return Mock()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gate(store, relay, clock) -> OutboundMessageGate:
    return OutboundMessageGate(store, relay, clock=clock)


def _stored(store: MemoryStateStore) -> RateWindow:
    return RateWindow.from_json(store.get(STORAGE_KEY))


class TestQuotaCheck:
    """Test reading the persisted window."""

    def test_missing_state_is_fresh(self, gate) -> None:
        assert gate.current_window() == RateWindow(count=0, start_time=NOW_MS)

    def test_corrupt_state_is_fresh(self, gate, store) -> None:
        store.set(STORAGE_KEY, "{not json")

        assert gate.current_window() == RateWindow(count=0, start_time=NOW_MS)

    def test_wrong_shape_is_fresh(self, gate, store) -> None:
        store.set(STORAGE_KEY, json.dumps({"count": "many"}))

        assert gate.current_window().count == 0

    def test_active_window_is_kept(self, gate, store) -> None:
        store.set(STORAGE_KEY, RateWindow(count=3, start_time=NOW_MS - 1000).to_json())

        assert gate.current_window() == RateWindow(count=3, start_time=NOW_MS - 1000)

    def test_expired_window_resets(self, gate, store) -> None:
        store.set(STORAGE_KEY, RateWindow(count=10, start_time=NOW_MS - DAY_MS).to_json())

        assert gate.current_window() == RateWindow(count=0, start_time=NOW_MS)

    def test_check_quota_blocks_at_limit(self, gate, store) -> None:
        store.set(STORAGE_KEY, RateWindow(count=10, start_time=NOW_MS).to_json())

        assert gate.check_quota() is None

    def test_remaining(self, gate, store) -> None:
        assert gate.remaining() == 10
        store.set(STORAGE_KEY, RateWindow(count=7, start_time=NOW_MS).to_json())
        assert gate.remaining() == 3

    @pytest.mark.parametrize(
        "raw",
        [
            '{"count": Infinity, "startTime": 0}',
            '{"count": NaN, "startTime": 0}',
            '{"count": 1, "startTime": Infinity}',
            '{"count": 1, "startTime": -Infinity}',
            '{"count": 1, "startTime": NaN}',
        ],
    )
    def test_non_finite_state_is_fresh(self, gate, store, raw) -> None:
        store.set(STORAGE_KEY, raw)

        assert gate.current_window() == RateWindow(count=0, start_time=NOW_MS)
        assert gate.remaining() == 10

    def test_reads_original_wire_format(self, gate, store) -> None:
        store.set(STORAGE_KEY, '{"count":2,"startTime":%d}' % NOW_MS)

        assert gate.current_window().count == 2


class TestSubmit:
    """Test the submission state machine."""

    def test_starts_idle(self, gate) -> None:
        assert gate.status is GateStatus.IDLE

    def test_success(self, gate, relay, store, alumnus, contact) -> None:
        outcome = gate.submit(alumnus, contact)

        assert outcome.ok
        assert gate.status is GateStatus.SUCCESS
        relay.send.assert_called_once()
        payload = relay.send.call_args[0][0]
        assert payload["alumniName"] == "Dupont Jean"
        assert "type" not in payload
        assert _stored(store) == RateWindow(count=1, start_time=NOW_MS)

    def test_report_mode(self, gate, relay, alumnus, contact) -> None:
        gate.submit(alumnus, contact, "report")

        assert relay.send.call_args[0][0]["type"] == "report"

    def test_connection_failure(self, gate, relay, store, alumnus, contact) -> None:
        relay.send.side_effect = RelayConnectionError("refused")

        outcome = gate.submit(alumnus, contact)

        assert not outcome.ok
        assert outcome.status is GateStatus.ERROR
        assert outcome.error_kind is GateErrorKind.CONNECTION_FAILURE
        assert store.get(STORAGE_KEY) is None

    def test_quota_exceeded_skips_network(self, gate, relay, store, alumnus, contact) -> None:
        store.set(STORAGE_KEY, RateWindow(count=10, start_time=NOW_MS).to_json())

        outcome = gate.submit(alumnus, contact)

        assert outcome.error_kind is GateErrorKind.QUOTA_EXCEEDED
        assert "10" in outcome.message
        relay.send.assert_not_called()

    def test_submit_requires_idle(self, gate, alumnus, contact) -> None:
        gate.submit(alumnus, contact)

        with pytest.raises(InvalidTransition):
            gate.submit(alumnus, contact)

    def test_retry_from_error(self, gate, relay, alumnus, contact) -> None:
        relay.send.side_effect = RelayConnectionError("refused")
        gate.submit(alumnus, contact)

        gate.retry()

        assert gate.status is GateStatus.IDLE
        assert gate.error_kind is None
        relay.send.side_effect = None
        assert gate.submit(alumnus, contact).ok

    def test_retry_requires_error(self, gate) -> None:
        with pytest.raises(InvalidTransition):
            gate.retry()

    def test_close_resets(self, gate, alumnus, contact) -> None:
        gate.submit(alumnus, contact)
        gate.close()

        assert gate.status is GateStatus.IDLE

    def test_ten_then_blocked(self, gate, relay, store, alumnus, contact) -> None:
        for _ in range(10):
            assert gate.submit(alumnus, contact).ok
            gate.close()

        outcome = gate.submit(alumnus, contact)

        assert outcome.error_kind is GateErrorKind.QUOTA_EXCEEDED
        assert relay.send.call_count == 10
        assert _stored(store).count == 10

    def test_window_reset_after_a_day(self, gate, store, clock, alumnus, contact) -> None:
        for _ in range(10):
            gate.submit(alumnus, contact)
            gate.close()
        assert gate.submit(alumnus, contact).error_kind is GateErrorKind.QUOTA_EXCEEDED
        gate.retry()

        clock.now += 24 * 60 * 60 + 1
        outcome = gate.submit(alumnus, contact)

        assert outcome.ok
        assert _stored(store) == RateWindow(count=1, start_time=int(clock.now * 1000))

    def test_start_time_kept_after_first_send(self, gate, store, clock, alumnus, contact) -> None:
        gate.submit(alumnus, contact)
        gate.close()
        clock.now += 60
        gate.submit(alumnus, contact)

        assert _stored(store) == RateWindow(count=2, start_time=NOW_MS)

    def test_first_send_anchors_after_dispatch(self, store, alumnus, contact) -> None:
        """The window start is taken when the count is written, not when checked."""
        clock = FakeClock()
        relay = Mock()

        def slow_send(payload):
            clock.now += 5

        relay.send.side_effect = slow_send
        gate = OutboundMessageGate(store, relay, clock=clock)

        gate.submit(alumnus, contact)

        assert _stored(store).start_time == NOW_MS + 5000

    def test_custom_limit(self, store, relay, clock, alumnus, contact) -> None:
        gate = OutboundMessageGate(store, relay, limit=1, clock=clock)

        assert gate.submit(alumnus, contact).ok
        gate.close()
        outcome = gate.submit(alumnus, contact)

        assert outcome.error_kind is GateErrorKind.QUOTA_EXCEEDED
        assert "limit of 1 " in outcome.message

    def test_quota_message_follows_window(self, store, relay, clock, alumnus, contact) -> None:
        gate = OutboundMessageGate(store, relay, limit=1, window_ms=6 * 60 * 60 * 1000, clock=clock)

        gate.submit(alumnus, contact)
        gate.close()
        outcome = gate.submit(alumnus, contact)

        assert outcome.message.endswith("try again in 6 hours.")

    def test_unexpected_relay_error_ends_in_error(self, gate, relay, store, alumnus, contact) -> None:
        relay.send.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            gate.submit(alumnus, contact)

        assert gate.status is GateStatus.ERROR
        assert gate.error_kind is GateErrorKind.CONNECTION_FAILURE
        assert store.get(STORAGE_KEY) is None
        gate.retry()
        assert gate.status is GateStatus.IDLE

    def test_redirect_loop_is_connection_failure(self, store, clock, alumnus, contact) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": str(request.url)})

        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        gate = OutboundMessageGate(store, RelayClient(RELAY_URL, client=client), clock=clock)

        outcome = gate.submit(alumnus, contact)

        assert outcome.error_kind is GateErrorKind.CONNECTION_FAILURE
        assert gate.status is GateStatus.ERROR
        assert store.get(STORAGE_KEY) is None


class TestSharedState:
    """Test gates sharing one persisted window."""

    def test_interleaved_sessions_overshoot(self, store, clock, alumnus, contact) -> None:
        """Both sessions check before either writes, so one increment is lost."""
        store.set(STORAGE_KEY, RateWindow(count=9, start_time=NOW_MS).to_json())
        second = OutboundMessageGate(store, Mock(), clock=clock)
        first_relay = Mock()
        first_relay.send.side_effect = lambda payload: second.submit(alumnus, contact)
        first = OutboundMessageGate(store, first_relay, clock=clock)

        assert first.submit(alumnus, contact).ok

        assert second.status is GateStatus.SUCCESS
        assert first_relay.send.call_count + second.relay.send.call_count == 2
        assert _stored(store).count == 10

        third = OutboundMessageGate(store, Mock(), clock=clock)
        assert third.submit(alumnus, contact).error_kind is GateErrorKind.QUOTA_EXCEEDED

    def test_window_survives_restart(self, tmp_path, relay, clock, alumnus, contact) -> None:
        db_path = tmp_path / "state.db"
        store = SQLiteStateStore(db_path)
        gate = OutboundMessageGate(store, relay, clock=clock)
        for _ in range(3):
            assert gate.submit(alumnus, contact).ok
            gate.close()
        store.close()

        reopened = SQLiteStateStore(db_path)
        try:
            restarted = OutboundMessageGate(reopened, relay, clock=clock)
            assert restarted.current_window() == RateWindow(count=3, start_time=NOW_MS)
            assert restarted.remaining() == 7
        finally:
            reopened.close()
