"""
Provider availability operations.

Thin caller-facing layer over the shared AvailabilityEngine: results are
plain dicts ready to serialize, and schedule validation failures come
back as ``success: False`` with a message instead of an exception.
Unknown providers and blocked dates simply have no slots.
"""

import logging
from datetime import datetime
from typing import Any, Optional, TypedDict

from slot_engine.config import settings
from slot_engine.engine import get_default_engine
from slot_engine.errors import InvalidScheduleError, NotFoundError
from slot_engine.schemas.schedule_schema import ExceptionType

logger = logging.getLogger(__name__)


class SlotsResult(TypedDict):
    """Result from get_available_slots."""

    available: bool
    provider_id: str
    date: str
    duration: int
    slots: list[str]
    message: str


class ScheduleResult(TypedDict, total=False):
    """Result from update_weekly_schedule, add_exception, remove_exception, block_period."""

    success: bool
    message: str
    field: Optional[str]
    details: Any


def get_availability(provider_id: str, legacy: bool = False) -> dict[str, Any]:
    """Return the provider's schedule and exceptions (legacy envelope if requested)."""
    view = get_default_engine().get_availability(provider_id, legacy=legacy)
    if legacy:
        return view
    return view.model_dump(mode="json", by_alias=True)


def update_weekly_schedule(provider_id: str, schedule: Any) -> ScheduleResult:
    """Replace the weekly schedule with a canonical or legacy payload."""
    try:
        updated = get_default_engine().update_weekly_schedule(provider_id, schedule)
    except InvalidScheduleError as exc:
        logger.warning("Rejected schedule update for %s: %s", provider_id, exc)
        return {"success": False, "message": str(exc), "field": exc.field}
    return {
        "success": True,
        "message": f"Weekly schedule updated for {provider_id}.",
        "details": updated.model_dump(mode="json", by_alias=True),
    }


def add_exception(
    provider_id: str,
    date: str,
    type: str,
    reason: str = "",
    custom_hours: Optional[list[dict]] = None,
    special_pricing: Optional[dict] = None,
) -> ScheduleResult:
    """Add or replace a date exception."""
    try:
        entry = get_default_engine().add_exception(
            provider_id, date, ExceptionType(type), reason, custom_hours, special_pricing
        )
    except InvalidScheduleError as exc:
        return {"success": False, "message": str(exc), "field": exc.field}
    return {
        "success": True,
        "message": f"{entry.type.value} exception saved for {entry.date.isoformat()}.",
        "details": entry.model_dump(mode="json", by_alias=True),
    }


def remove_exception(provider_id: str, date: str) -> ScheduleResult:
    removed = get_default_engine().remove_exception(provider_id, date)
    return {
        "success": True,
        "message": f"Exception on {date} removed." if removed else f"No exception on {date}.",
    }


def list_exceptions(provider_id: str, start: Optional[str] = None, end: Optional[str] = None) -> list[dict]:
    entries = get_default_engine().list_exceptions(provider_id, start, end)
    return [e.model_dump(mode="json", by_alias=True) for e in entries]


def block_period(provider_id: str, start: str, end: str, reason: str = "") -> ScheduleResult:
    """Mark an inclusive date range unavailable."""
    try:
        entries = get_default_engine().block_period(provider_id, start, end, reason)
    except ValueError as exc:
        return {"success": False, "message": str(exc)}
    return {
        "success": True,
        "message": f"Blocked {len(entries)} day(s) from {start} to {end}.",
        "details": [e.date.isoformat() for e in entries],
    }


def get_available_slots(
    provider_id: str, date: str, duration: int = settings.booking.default_slot_duration
) -> SlotsResult:
    """List bookable start times for a service duration on a date (default slot length if omitted)."""
    slots = get_default_engine().get_available_slots(provider_id, date, duration)
    return {
        "available": bool(slots),
        "provider_id": provider_id,
        "date": date,
        "duration": duration,
        "slots": slots,
        "message": (
            f"{len(slots)} time slots available on {date}." if slots else f"No availability on {date}."
        ),
    }


def check_slot_availability(provider_id: str, start: str, end: str) -> dict[str, Any]:
    """Check an exact ISO datetime interval against existing bookings.

    Bounds may carry an offset (``2025-03-17T09:30:00+00:00``); they are
    compared in local time. Malformed or inverted ranges come back as
    ``success: False`` with a message.
    """
    try:
        result = get_default_engine().check_slot_availability(
            provider_id, datetime.fromisoformat(start), datetime.fromisoformat(end)
        )
    except ValueError as exc:
        return {"success": False, "message": f"Invalid time range: {exc}"}
    return result.model_dump(by_alias=True)


def get_day_schedule(provider_id: str, date: str) -> Optional[dict[str, Any]]:
    """Resolved windows for one date with occupancy, or None for an unknown provider."""
    try:
        view = get_default_engine().get_day_schedule(provider_id, date)
    except NotFoundError:
        return None
    return view.model_dump(mode="json", by_alias=True)


def reset() -> None:
    """Clear schedules and exceptions. Used by test fixtures for isolation."""
    engine = get_default_engine()
    engine.schedules.clear()
    engine.exceptions.clear()
