"""Weekly schedule, time window, and date exception data models."""

from datetime import date as date_type
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from slot_engine.config import settings
from slot_engine.utils import parse_hhmm


class Weekday(str, Enum):
    """Day-of-week keys, in Python ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date_type) -> "Weekday":
        return list(cls)[day.weekday()]


class TimeWindow(BaseModel):
    """A contiguous bookable interval of one day, in provider-local wall-clock time.

    start/end are optional so that corrupt stored documents still load;
    the schedule store rejects them on upsert and the slot generator
    skips them.
    """

    model_config = ConfigDict(populate_by_name=True)

    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    max_concurrent_bookings: int = Field(
        default=settings.schedule.max_concurrent,
        ge=1,
        validation_alias=AliasChoices(
            "maxBookings", "maxConcurrentBookings", "max_concurrent_bookings"
        ),
        serialization_alias="maxBookings",
    )
    current_bookings: int = Field(default=0, ge=0, alias="currentBookings")
    is_booked: bool = Field(default=False, alias="isBooked")

    @field_validator("max_concurrent_bookings", mode="before")
    @classmethod
    def _default_capacity(cls, value: Any) -> Any:
        return 1 if value in (None, 0) else value

    @field_validator("current_bookings", mode="before")
    @classmethod
    def _default_occupancy(cls, value: Any) -> Any:
        return 0 if value is None else value

    def bounds(self) -> tuple[int, int]:
        """Return (start, end) in minutes since midnight; ValueError if malformed."""
        return parse_hhmm(self.start_time), parse_hhmm(self.end_time)

    @property
    def is_exhausted(self) -> bool:
        return self.is_booked or self.current_bookings >= self.max_concurrent_bookings


class DaySchedule(BaseModel):
    """Availability flag and ordered windows for one weekday."""

    model_config = ConfigDict(populate_by_name=True)

    is_available: bool = Field(default=False, alias="isAvailable")
    time_slots: list[TimeWindow] = Field(default_factory=list, alias="timeSlots")


class WeeklySchedule(BaseModel):
    """
    A provider's recurring weekly availability.

    ``days`` always holds exactly one entry per Weekday: missing days are
    filled in as unavailable and unknown day names fail validation.
    """

    model_config = ConfigDict(populate_by_name=True)

    days: dict[Weekday, DaySchedule] = Field(default_factory=dict, validate_default=True)
    buffer_time: int = Field(default=settings.schedule.buffer_time, ge=0, alias="bufferTime")
    min_notice_time: int = Field(
        default=settings.schedule.min_notice_hours, ge=0, alias="minNoticeTime"
    )
    max_advance_booking: int = Field(
        default=settings.schedule.max_advance_days, ge=1, alias="maxAdvanceBooking"
    )
    auto_accept_bookings: bool = Field(
        default=settings.schedule.auto_accept, alias="autoAcceptBookings"
    )

    @field_validator("days", mode="after")
    @classmethod
    def _fill_missing_days(cls, days: dict[Weekday, DaySchedule]) -> dict[Weekday, DaySchedule]:
        return {day: days.get(day, DaySchedule()) for day in Weekday}

    def day(self, weekday: Weekday) -> DaySchedule:
        return self.days[weekday]


class ExceptionType(str, Enum):
    UNAVAILABLE = "unavailable"
    CUSTOM_HOURS = "custom_hours"
    SPECIAL_PRICING = "special_pricing"


class SpecialPricing(BaseModel):
    """Price adjustment for a date; carried through, never used for slot math."""

    multiplier: float = Field(gt=0)
    reason: str = ""


class ExceptionEntry(BaseModel):
    """A date-specific override that supersedes the weekly schedule for that date only."""

    model_config = ConfigDict(populate_by_name=True)

    date: date_type
    type: ExceptionType
    reason: str = ""
    custom_hours: Optional[list[TimeWindow]] = Field(default=None, alias="customHours")
    special_pricing: Optional[SpecialPricing] = Field(default=None, alias="specialPricing")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )

    @field_validator("date", mode="before")
    @classmethod
    def _strip_time_of_day(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @field_validator("custom_hours", mode="before")
    @classmethod
    def _single_window_to_list(cls, value: Any) -> Any:
        # Older profile documents store one {startTime, endTime} object.
        if isinstance(value, dict):
            return [value]
        return value


class AvailabilityView(BaseModel):
    """A provider's schedule together with its date exceptions."""

    provider_id: str
    schedule: WeeklySchedule
    exceptions: list[ExceptionEntry] = Field(default_factory=list)


class DayView(BaseModel):
    """The windows that actually apply on one calendar date."""

    date: date_type
    weekday: Weekday
    is_available: bool
    source: str  # "weekly" | "exception"
    windows: list[TimeWindow] = Field(default_factory=list)
    exception: Optional[ExceptionEntry] = None


# --- Legacy representation (API compatibility only) ---


class LegacyTimeSlot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: str
    end: str
    is_active: bool = Field(default=True, alias="isActive")


class LegacyDaySchedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_available: bool = Field(default=False, alias="isAvailable")
    time_slots: list[LegacyTimeSlot] = Field(default_factory=list, alias="timeSlots")


class LegacyWeeklySchedule(BaseModel):
    """The simple per-day ``{start, end, isActive}`` form older clients send and expect."""

    days: dict[Weekday, LegacyDaySchedule] = Field(default_factory=dict, validate_default=True)

    @field_validator("days", mode="after")
    @classmethod
    def _fill_missing_days(
        cls, days: dict[Weekday, LegacyDaySchedule]
    ) -> dict[Weekday, LegacyDaySchedule]:
        return {day: days.get(day, LegacyDaySchedule()) for day in Weekday}
