"""Time helpers.

Stored timestamps are naive (no tzinfo) but always in UTC, so values read
back from SQLite compare cleanly with values produced in-process.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

# Smallest step used to keep per-conversation timestamps strictly increasing
TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    """Naive UTC datetime (tzinfo stripped)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def next_after(previous: datetime | None) -> datetime:
    """Current time, nudged forward so it is strictly later than ``previous``."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + TICK
    return now
