"""
Boundary adapter between the legacy and canonical schedule representations.

Older clients send and expect ``{start, end, isActive}`` slots per day.
The engine stores and reasons only about the canonical form
(``{startTime, endTime, isBooked, maxBookings, currentBookings}``);
legacy data is converted on the way in and rendered on the way out.
Slot generation never runs on the legacy form.
"""

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from slot_engine.schemas.schedule_schema import (
    DaySchedule,
    ExceptionEntry,
    ExceptionType,
    LegacyDaySchedule,
    LegacyTimeSlot,
    LegacyWeeklySchedule,
    TimeWindow,
    Weekday,
    WeeklySchedule,
)

logger = logging.getLogger(__name__)

_WEEKDAY_KEYS = {day.value for day in Weekday}
_SETTING_ALIASES = {
    "buffer_time": "bufferTime",
    "min_notice_time": "minNoticeTime",
    "max_advance_booking": "maxAdvanceBooking",
    "auto_accept_bookings": "autoAcceptBookings",
}


def to_canonical(legacy: LegacyWeeklySchedule, base: Optional[WeeklySchedule] = None) -> WeeklySchedule:
    """Convert a legacy schedule; inactive legacy slots are dropped.

    Scheduling settings (buffer, notice, horizon, auto-accept) are taken
    from ``base`` when given, since the legacy day map does not carry them.
    """
    days = {
        weekday: DaySchedule(
            is_available=day.is_available,
            time_slots=[
                TimeWindow(
                    start_time=slot.start,
                    end_time=slot.end,
                    is_booked=False,
                    max_concurrent_bookings=1,
                    current_bookings=0,
                )
                for slot in day.time_slots
                if slot.is_active
            ],
        )
        for weekday, day in legacy.days.items()
    }
    if base is None:
        return WeeklySchedule(days=days)
    return base.model_copy(update={"days": WeeklySchedule(days=days).days}, deep=True)


def to_legacy(canonical: WeeklySchedule) -> LegacyWeeklySchedule:
    """Render a canonical schedule in the legacy form for API responses."""
    return LegacyWeeklySchedule(
        days={
            weekday: LegacyDaySchedule(
                is_available=day.is_available,
                time_slots=[
                    LegacyTimeSlot(
                        start=window.start_time,
                        end=window.end_time,
                        is_active=not window.is_booked
                        and window.current_bookings < window.max_concurrent_bookings,
                    )
                    for window in day.time_slots
                ],
            )
            for weekday, day in canonical.days.items()
        }
    )


def to_legacy_availability(
    provider_id: str, schedule: WeeklySchedule, exceptions: Iterable[ExceptionEntry]
) -> dict[str, Any]:
    """Build the legacy ``availability`` response envelope."""
    legacy = to_legacy(schedule)
    return {
        "providerId": provider_id,
        "weeklySchedule": {
            weekday.value: day.model_dump(by_alias=True) for weekday, day in legacy.days.items()
        },
        "dateOverrides": [
            {
                "date": entry.date.isoformat(),
                "isAvailable": entry.type != ExceptionType.UNAVAILABLE,
                "reason": entry.reason,
                "notes": entry.reason,
                "createdAt": entry.created_at.isoformat(),
            }
            for entry in exceptions
        ],
        "blockedPeriods": [],
        "bufferTime": schedule.buffer_time,
        "autoAcceptBookings": schedule.auto_accept_bookings,
        "maxAdvanceBookingDays": schedule.max_advance_booking,
    }


def is_legacy_payload(payload: Mapping[str, Any]) -> bool:
    """True when any slot in the payload uses the legacy ``start``/``end`` keys."""
    for day in _day_map(payload).values():
        if not isinstance(day, Mapping):
            continue
        for slot in day.get("timeSlots") or day.get("time_slots") or []:
            if isinstance(slot, Mapping) and ("start" in slot or "end" in slot or "isActive" in slot):
                return True
    return False


def parse_schedule_payload(
    payload: Union[Mapping[str, Any], WeeklySchedule, LegacyWeeklySchedule],
    base: Optional[WeeklySchedule] = None,
) -> WeeklySchedule:
    """
    Accept a schedule in either representation and return the canonical form.

    Dict payloads may nest days under ``days``/``weeklySchedule`` or put the
    weekday keys at the top level (the shape of the stored profile
    document). Validation errors from pydantic propagate unchanged.
    """
    if isinstance(payload, WeeklySchedule):
        return payload
    if isinstance(payload, LegacyWeeklySchedule):
        return to_canonical(payload, base)

    days = _day_map(payload)
    if is_legacy_payload(payload):
        logger.debug("Converting legacy schedule payload to canonical form")
        return to_canonical(LegacyWeeklySchedule(days=days), base)

    data: dict[str, Any] = {}
    if base is not None:
        data.update(base.model_dump(by_alias=True, exclude={"days"}))
    for key, value in payload.items():
        if key in _SETTING_ALIASES:
            data[_SETTING_ALIASES[key]] = value
        elif key in _SETTING_ALIASES.values():
            data[key] = value
    data["days"] = days
    return WeeklySchedule.model_validate(data)


def _day_map(payload: Mapping[str, Any]) -> dict[str, Any]:
    for key in ("days", "weeklySchedule", "weekly_schedule", "schedule"):
        if isinstance(payload.get(key), Mapping):
            return dict(payload[key])
    return {key: value for key, value in payload.items() if key in _WEEKDAY_KEYS}
