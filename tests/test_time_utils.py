"""Time helper tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from app.utils.time import days_from_now, minutes_ago, now_utc, parse_timestamp


def test_now_utc_is_timezone_aware() -> None:
    assert now_utc().tzinfo is not None


def test_parse_timestamp_handles_missing_values() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_parse_timestamp_normalizes_to_utc() -> None:
    """Zulu, offset and naive inputs should all come back as aware UTC."""
    expected = datetime(2026, 2, 7, 12, 0, tzinfo=UTC)
    assert parse_timestamp("2026-02-07T12:00:00Z") == expected
    assert parse_timestamp("2026-02-07T13:00:00+01:00") == expected
    assert parse_timestamp(datetime(2026, 2, 7, 12, 0)) == expected
    assert parse_timestamp("2026-02-07T13:00:00+01:00").tzinfo == UTC


def test_relative_helpers_use_given_base() -> None:
    base = datetime(2026, 2, 7, tzinfo=UTC)
    assert days_from_now(7, base=base) == base + timedelta(days=7)
    assert minutes_ago(15, base=base) == base - timedelta(minutes=15)
