"""
Conflict detection between candidate intervals and existing bookings.

Intervals are half-open ``[start, end)``: a slot that ends exactly when a
booking starts (or starts when one ends) does not conflict. Only bookings
in an active status (pending, confirmed, in_progress) count; completed,
cancelled and rejected bookings never constrain new slots.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable

from slot_engine.schemas.booking_schema import Booking, RangeCheck

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap test. Symmetric in its two intervals."""
    return a_start < b_end and a_end > b_start


def active_bookings(bookings: Iterable[Booking]) -> list[Booking]:
    """Keep only bookings that still hold provider time."""
    return [b for b in bookings if b.is_active]


def count_conflicts(
    start: datetime,
    end: datetime,
    bookings: Iterable[Booking],
    buffer_minutes: int = 0,
) -> int:
    """Count active bookings whose (optionally buffer-padded) interval overlaps ``[start, end)``."""
    pad = timedelta(minutes=buffer_minutes)
    return sum(
        1
        for b in active_bookings(bookings)
        if overlaps(start, end, b.scheduled_start - pad, b.estimated_end_time + pad)
    )


def check_range(
    requested_start: datetime,
    requested_end: datetime,
    bookings: Iterable[Booking],
    buffer_minutes: int = 0,
) -> RangeCheck:
    """Check an exact caller-proposed interval rather than a generated candidate."""
    if requested_end <= requested_start:
        raise ValueError(
            f"requested end {requested_end.isoformat()} must be after start {requested_start.isoformat()}"
        )
    conflicts = count_conflicts(requested_start, requested_end, bookings, buffer_minutes)
    return RangeCheck(is_available=conflicts == 0, conflicting_bookings_count=conflicts)


def filter_candidates(
    candidates: Iterable[datetime],
    duration: int,
    bookings: Iterable[Booking],
    capacity: int = 1,
    buffer_minutes: int = 0,
) -> list[datetime]:
    """
    Drop candidates that would exceed ``capacity`` overlapping active bookings.

    With the default capacity of 1, any overlap is a conflict.

    Args:
        candidates: Candidate start instants from the slot generator.
        duration: Slot width in minutes.
        bookings: Existing bookings for the provider and date.
        capacity: Concurrent bookings the owning window admits.
        buffer_minutes: Padding applied around each existing booking.

    Returns:
        The candidates that remain bookable, in input order.
    """
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")
    width = timedelta(minutes=duration)
    held = active_bookings(bookings)

    available = []
    for start in candidates:
        conflicts = count_conflicts(start, start + width, held, buffer_minutes)
        if conflicts < capacity:
            available.append(start)
        else:
            logger.debug("Candidate %s blocked by %d booking(s)", start.strftime("%H:%M"), conflicts)
    return available
