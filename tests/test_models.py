"""Tests for core data models."""

from __future__ import annotations

import dataclasses

import pytest

from alumnifinder.models import FIELDS, Alumnus, ContactRequest, RateWindow


class TestAlumnus:
    """Test Alumnus dataclass."""

    def test_defaults_are_empty_strings(self) -> None:
        """Every schema field defaults to an empty string."""
        alumnus = Alumnus(id="row-1")

        for name in FIELDS:
            assert getattr(alumnus, name) == ""

    def test_schema_has_fourteen_fields(self) -> None:
        assert len(FIELDS) == 14
        assert set(FIELDS) <= set(Alumnus.__dataclass_fields__)

    def test_immutable(self) -> None:
        """Records cannot be modified after creation."""
        alumnus = Alumnus(id="row-1", nom="Dupont")

        with pytest.raises(dataclasses.FrozenInstanceError):
            alumnus.nom = "Martin"  # type: ignore[misc]

    def test_display_name(self) -> None:
        """Shows given name and family initial."""
        alumnus = Alumnus(id="row-1", nom="dupont", prenom="Jean")

        assert alumnus.display_name == "Jean D."

    def test_display_name_without_given_name(self) -> None:
        assert Alumnus(id="row-1", nom="Dupont").display_name == "D."

    def test_full_name(self) -> None:
        alumnus = Alumnus(id="row-1", nom="Dupont", prenom="Jean")

        assert alumnus.full_name == "Dupont Jean"

    def test_equality(self) -> None:
        """Should compare records by value."""
        assert Alumnus(id="row-1", nom="A") == Alumnus(id="row-1", nom="A")
        assert Alumnus(id="row-1", nom="A") != Alumnus(id="row-2", nom="A")


class TestRateWindow:
    """Test RateWindow serialization and expiry."""

    def test_fresh(self) -> None:
        window = RateWindow.fresh(1_000)

        assert window.count == 0
        assert window.start_time == 1_000

    def test_to_json_uses_start_time_key(self) -> None:
        raw = RateWindow(count=2, start_time=123).to_json()

        assert '"startTime": 123' in raw
        assert '"count": 2' in raw

    def test_from_json(self) -> None:
        window = RateWindow.from_json('{"count": 4, "startTime": 1700000000000}')

        assert window == RateWindow(count=4, start_time=1_700_000_000_000)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            '{"count": 1}',
            '{"count": "1", "startTime": 5}',
            '{"count": true, "startTime": 5}',
            '{"count": -1, "startTime": 5}',
            '{"count": Infinity, "startTime": 5}',
            '{"count": 1, "startTime": NaN}',
        ],
    )
    def test_from_json_rejects_malformed(self, raw: str) -> None:
        with pytest.raises(ValueError):
            RateWindow.from_json(raw)

    def test_expired(self) -> None:
        window = RateWindow(count=1, start_time=0)

        assert not window.expired(999, 1_000)
        assert window.expired(1_000, 1_000)
        assert window.expired(5_000, 1_000)


class TestContactRequest:
    """Test ContactRequest validation."""

    def test_valid(self) -> None:
        request = ContactRequest(sender_name="Jean", sender_email="j@example.org", message="Bonjour")

        assert request.sender_name == "Jean"

    @pytest.mark.parametrize("field", ["sender_name", "sender_email", "message"])
    def test_blank_field_rejected(self, field: str) -> None:
        values = {"sender_name": "Jean", "sender_email": "j@example.org", "message": "Bonjour"}
        values[field] = "   "

        with pytest.raises(ValueError, match=field):
            ContactRequest(**values)
