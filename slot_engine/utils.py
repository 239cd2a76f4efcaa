"""Shared time helpers used across the slot engine."""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_hhmm(value: Optional[str]) -> int:
    """Convert a wall-clock ``HH:MM`` string to minutes since midnight.

    Raises ValueError for missing or malformed values.

    Examples:
        >>> parse_hhmm("09:30")
        570
        >>> parse_hhmm("9:05")
        545
    """
    if not value:
        raise ValueError("time value is missing")
    match = _HHMM.match(value)
    if not match:
        raise ValueError(f"time {value!r} is not in HH:MM format")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"time {value!r} is out of range")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``.

    Examples:
        >>> format_hhmm(570)
        '09:30'
    """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_hhmm(value: str) -> str:
    """Return a zero-padded ``HH:MM`` for a valid time string."""
    return format_hhmm(parse_hhmm(value))


def at_time(day: date, hhmm: str) -> datetime:
    """Combine a calendar date with a wall-clock ``HH:MM`` (naive, provider-local)."""
    minutes = parse_hhmm(hhmm)
    return datetime.combine(day, time(minutes // 60, minutes % 60))


def to_date(value) -> date:
    """Coerce a date, datetime, or ISO string to a calendar date (time-of-day ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()).date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def date_range(start: date, end: date) -> list[date]:
    """Inclusive list of dates from start to end."""
    if end < start:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
