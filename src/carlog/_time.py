"""Epoch-millisecond helpers shared across the library.

Fuel record dates are stored as epoch milliseconds at midnight of the
purchase day.  Every conversion between a stored timestamp and a
calendar date goes through this module so a single time zone convention
is applied to all records.
"""

from __future__ import annotations

import time
from datetime import UTC, date, datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_UTC_NAMES = frozenset({"utc", "z", "etc/utc", "gmt"})


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def resolve_zone(name: str) -> tzinfo:
    """Return a tzinfo for an IANA zone name.

    Raises :class:`ValueError` for unknown zones.
    """
    normalized = name.strip()
    if normalized.lower() in _UTC_NAMES:
        return UTC
    try:
        return ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown time zone: {name!r}") from exc


def calendar_date(epoch_ms: int, tz: tzinfo = UTC) -> date:
    """Calendar date of *epoch_ms* in *tz*."""
    return datetime.fromtimestamp(epoch_ms / 1000, tz=tz).date()


def start_of_day_ms(day: date, tz: tzinfo = UTC) -> int:
    """Epoch milliseconds of midnight at the start of *day* in *tz*."""
    midnight = datetime(day.year, day.month, day.day, tzinfo=tz)
    return int(midnight.timestamp() * 1000)


def to_epoch_ms(value: Any) -> Any:
    """Coerce datetimes to epoch milliseconds.

    Naive datetimes are taken as UTC.  Bare dates are rejected: which
    instant a calendar date denotes depends on the logbook's time zone,
    so callers convert them with :func:`start_of_day_ms` first.
    Anything else is returned unchanged for the field validator to judge.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return int(value.timestamp() * 1000)
    if isinstance(value, date):
        raise ValueError("calendar dates need a time zone; convert with start_of_day_ms() first")
    return value
