"""UTC time helpers.

Timestamps are stored as naive UTC; aware values are normalised on the way in.
"""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta

_ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def days_until(later: datetime, now: datetime) -> int:
    """Whole days from *now* to *later*, floored (a partial day does not count)."""
    return (later - now) // _ONE_DAY
