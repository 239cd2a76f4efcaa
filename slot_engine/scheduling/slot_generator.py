"""
Slot generation: expand a day's time windows into candidate start times.

Pure functions, no storage access. Candidates are packed back-to-back
inside each window; buffer time is a conflict-check concern and is not
inserted between self-generated slots.

Usage:
    windows = [TimeWindow(start_time="09:00", end_time="12:00")]
    generate(windows, duration=60, buffer_time=15, day=date(2025, 3, 17))
    # -> [09:00, 10:00, 11:00] on 2025-03-17
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from slot_engine.schemas.schedule_schema import TimeWindow
from slot_engine.utils import format_hhmm

logger = logging.getLogger(__name__)


def generate(
    windows: Iterable[TimeWindow],
    duration: int,
    buffer_time: int,
    day: date,
) -> list[datetime]:
    """
    Enumerate candidate start instants for ``duration``-minute slots on ``day``.

    Args:
        windows: The day's time windows, in schedule order.
        duration: Slot width in minutes.
        buffer_time: Provider buffer in minutes. Accepted for interface
            symmetry with conflict checks; generation packs back-to-back.
        day: Calendar date the windows apply to.

    Returns:
        Ascending, de-duplicated candidate start datetimes.

    Raises:
        ValueError: If duration is not positive.
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")

    starts: set[int] = set()
    for index, window in enumerate(windows):
        if window.is_exhausted:
            logger.debug("Skipping exhausted window #%d (%s-%s)", index, window.start_time, window.end_time)
            continue
        try:
            window_start, window_end = window.bounds()
        except ValueError as exc:
            logger.warning("Skipping malformed time window #%d on %s: %s", index, day, exc)
            continue
        if window_start >= window_end:
            logger.warning(
                "Skipping inverted time window #%d on %s: %s-%s",
                index, day, window.start_time, window.end_time,
            )
            continue

        cursor = window_start
        while cursor + duration <= window_end:
            starts.add(cursor)
            cursor += duration

    midnight = datetime.combine(day, time())
    return [midnight + timedelta(minutes=minutes) for minutes in sorted(starts)]


def to_clock_strings(candidates: Iterable[datetime]) -> list[str]:
    """Render candidate instants as ``HH:MM`` strings."""
    return [format_hhmm(c.hour * 60 + c.minute) for c in candidates]


def find_window(
    windows: Iterable[TimeWindow], start: datetime, duration: int
) -> Optional[TimeWindow]:
    """Return the first well-formed window that fully contains ``[start, start+duration)``."""
    begin = start.hour * 60 + start.minute
    finish = begin + duration
    for window in windows:
        try:
            window_start, window_end = window.bounds()
        except ValueError:
            continue
        if window_start <= begin and finish <= window_end:
            return window
    return None
