"""
Per-provider weekly schedules and date exceptions.

In-memory stores standing in for the provider-profile document store.
Every read and write goes through deep copies, so callers can never
mutate stored state outside the documented operations.

Usage:
    schedules = ScheduleStore()
    schedule = schedules.get_or_create_default("prov-1")
    exceptions = ExceptionStore()
    exceptions.add("prov-1", date(2025, 3, 17), ExceptionType.UNAVAILABLE, "Holiday")
"""

import logging
import threading
from datetime import date
from typing import Iterable, Optional

from slot_engine.config import settings
from slot_engine.errors import InvalidScheduleError, NotFoundError
from slot_engine.schemas.schedule_schema import (
    DaySchedule,
    ExceptionEntry,
    ExceptionType,
    SpecialPricing,
    TimeWindow,
    Weekday,
    WeeklySchedule,
)
from slot_engine.utils import date_range, to_date

logger = logging.getLogger(__name__)


def validate_windows(windows: Iterable[TimeWindow], label: str) -> None:
    """
    Check one day's windows: well-formed, start < end, sane counters, no overlaps.

    Raises:
        InvalidScheduleError: naming the day (``label``) and the offending field.
    """
    spans: list[tuple[int, int, int]] = []
    for index, window in enumerate(windows):
        for field_name, value in (("startTime", window.start_time), ("endTime", window.end_time)):
            if not value:
                raise InvalidScheduleError(f"window #{index} is missing {field_name}", label, field_name)
        try:
            start, end = window.bounds()
        except ValueError as exc:
            raise InvalidScheduleError(f"window #{index}: {exc}", label, "timeSlots") from None
        if start >= end:
            raise InvalidScheduleError(
                f"window #{index} starts at {window.start_time} but ends at {window.end_time}",
                label,
                "endTime",
            )
        if window.current_bookings > window.max_concurrent_bookings:
            raise InvalidScheduleError(
                f"window #{index} has {window.current_bookings} bookings "
                f"but capacity {window.max_concurrent_bookings}",
                label,
                "currentBookings",
            )
        spans.append((start, end, index))

    spans.sort()
    for (_, prev_end, prev_index), (start, _, index) in zip(spans, spans[1:]):
        if start < prev_end:
            raise InvalidScheduleError(
                f"window #{index} overlaps window #{prev_index}", label, "timeSlots"
            )


def validate_schedule(schedule: WeeklySchedule) -> None:
    """Validate every day of a weekly schedule."""
    for weekday, day in schedule.days.items():
        validate_windows(day.time_slots, weekday.value)


def build_default_schedule() -> WeeklySchedule:
    """The schedule materialized for a provider on first access."""
    defaults = settings.schedule
    working = set(defaults.working_days)
    days = {}
    for weekday in Weekday:
        if weekday.value in working:
            days[weekday] = DaySchedule(
                is_available=True,
                time_slots=[
                    TimeWindow(
                        start_time=defaults.day_start,
                        end_time=defaults.day_end,
                        max_concurrent_bookings=defaults.max_concurrent,
                    )
                ],
            )
        else:
            days[weekday] = DaySchedule(is_available=False, time_slots=[])
    return WeeklySchedule(
        days=days,
        buffer_time=defaults.buffer_time,
        min_notice_time=defaults.min_notice_hours,
        max_advance_booking=defaults.max_advance_days,
        auto_accept_bookings=defaults.auto_accept,
    )


class ScheduleStore:
    """Weekly schedule per provider (one-to-one with the provider profile)."""

    def __init__(self) -> None:
        self._schedules: dict[str, WeeklySchedule] = {}
        self._lock = threading.Lock()

    def get(self, provider_id: str) -> WeeklySchedule:
        """Return the provider's schedule, or raise NotFoundError."""
        with self._lock:
            schedule = self._schedules.get(provider_id)
        if schedule is None:
            raise NotFoundError("schedule", provider_id)
        return schedule.model_copy(deep=True)

    def find(self, provider_id: str) -> Optional[WeeklySchedule]:
        """Return the provider's schedule, or None."""
        try:
            return self.get(provider_id)
        except NotFoundError:
            return None

    def get_or_create_default(self, provider_id: str) -> WeeklySchedule:
        """Return the schedule, materializing the default one on first access."""
        with self._lock:
            if provider_id not in self._schedules:
                self._schedules[provider_id] = build_default_schedule()
                logger.info("Materialized default schedule for provider %s", provider_id)
            return self._schedules[provider_id].model_copy(deep=True)

    def upsert(self, provider_id: str, schedule: WeeklySchedule) -> WeeklySchedule:
        """Validate and store a schedule. Nothing is written if validation fails."""
        validate_schedule(schedule)
        stored = schedule.model_copy(deep=True)
        with self._lock:
            self._schedules[provider_id] = stored
        logger.info("Weekly schedule updated for provider %s", provider_id)
        return stored.model_copy(deep=True)

    def clear(self) -> None:
        with self._lock:
            self._schedules.clear()


class ExceptionStore:
    """Date-specific overrides per provider. At most one entry per date; last write wins."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[date, ExceptionEntry]] = {}
        self._lock = threading.Lock()

    def add(
        self,
        provider_id: str,
        day,
        type: ExceptionType,
        reason: str = "",
        custom_hours: Optional[list[TimeWindow]] = None,
        special_pricing: Optional[SpecialPricing] = None,
    ) -> ExceptionEntry:
        """Insert or replace the exception for ``day``."""
        type = ExceptionType(type)
        day = to_date(day)
        if type == ExceptionType.CUSTOM_HOURS:
            if not custom_hours:
                raise InvalidScheduleError("custom_hours exception requires windows", day.isoformat(), "customHours")
            custom_hours = [TimeWindow.model_validate(w) if isinstance(w, dict) else w for w in custom_hours]
            validate_windows(custom_hours, day.isoformat())
        elif custom_hours:
            raise InvalidScheduleError(
                f"customHours is only allowed for custom_hours exceptions, not {type.value}",
                day.isoformat(),
                "customHours",
            )
        if type == ExceptionType.SPECIAL_PRICING:
            if special_pricing is None:
                raise InvalidScheduleError(
                    "special_pricing exception requires pricing details", day.isoformat(), "specialPricing"
                )
            if isinstance(special_pricing, dict):
                special_pricing = SpecialPricing.model_validate(special_pricing)
        elif special_pricing is not None:
            raise InvalidScheduleError(
                f"specialPricing is only allowed for special_pricing exceptions, not {type.value}",
                day.isoformat(),
                "specialPricing",
            )

        entry = ExceptionEntry(
            date=day,
            type=type,
            reason=reason or _default_reason(type),
            custom_hours=custom_hours,
            special_pricing=special_pricing,
        )
        with self._lock:
            replaced = self._entries.setdefault(provider_id, {}).get(day) is not None
            self._entries[provider_id][day] = entry
        logger.info(
            "Exception %s for provider %s on %s (%s)",
            "replaced" if replaced else "added", provider_id, day, type.value,
        )
        return entry.model_copy(deep=True)

    def remove(self, provider_id: str, day) -> bool:
        """Remove the exception for ``day``. Returns False (no error) when none existed."""
        day = to_date(day)
        with self._lock:
            removed = self._entries.get(provider_id, {}).pop(day, None) is not None
        if removed:
            logger.info("Exception removed for provider %s on %s", provider_id, day)
        return removed

    def get(self, provider_id: str, day) -> Optional[ExceptionEntry]:
        day = to_date(day)
        with self._lock:
            entry = self._entries.get(provider_id, {}).get(day)
        return entry.model_copy(deep=True) if entry else None

    def list_for_range(self, provider_id: str, start, end) -> list[ExceptionEntry]:
        """Exceptions with start <= date <= end, ascending by date."""
        start, end = to_date(start), to_date(end)
        with self._lock:
            entries = list(self._entries.get(provider_id, {}).values())
        return [
            e.model_copy(deep=True)
            for e in sorted(entries, key=lambda e: e.date)
            if start <= e.date <= end
        ]

    def list_all(self, provider_id: str) -> list[ExceptionEntry]:
        with self._lock:
            entries = list(self._entries.get(provider_id, {}).values())
        return [e.model_copy(deep=True) for e in sorted(entries, key=lambda e: e.date)]

    def block_period(self, provider_id: str, start, end, reason: str = "") -> list[ExceptionEntry]:
        """Mark every date from start to end (inclusive) unavailable."""
        start, end = to_date(start), to_date(end)
        if end < start:
            raise ValueError(f"block end {end} is before start {start}")
        return [
            self.add(provider_id, day, ExceptionType.UNAVAILABLE, reason or "Blocked period")
            for day in date_range(start, end)
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def _default_reason(type: ExceptionType) -> str:
    return {
        ExceptionType.UNAVAILABLE: "Unavailable",
        ExceptionType.CUSTOM_HOURS: "Custom hours",
        ExceptionType.SPECIAL_PRICING: "Special pricing",
    }[type]
