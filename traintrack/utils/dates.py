"""Date and instant helpers. Nothing here reads the wall clock."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC instant; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of ``day`` in ``tz``, expressed in UTC."""
    return datetime.combine(day, time(0, 0), tzinfo=tz).astimezone(timezone.utc)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Whole days from ``earlier`` to ``later``, floored."""
    return (as_utc(later) - as_utc(earlier)) // timedelta(days=1)
