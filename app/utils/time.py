"""Time utility helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def now_utc() -> datetime:
    """Return current timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None

    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        parsed = value

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def days_from_now(days: int, base: datetime | None = None) -> datetime:
    """Return ``base`` (or now) shifted forward by ``days`` whole days."""
    return (base or now_utc()) + timedelta(days=days)


def minutes_ago(minutes: int, base: datetime | None = None) -> datetime:
    """Return ``base`` (or now) shifted back by ``minutes``."""
    return (base or now_utc()) - timedelta(minutes=minutes)
