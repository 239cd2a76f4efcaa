"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Optional

import pytest

from slot_engine.engine import AvailabilityEngine, set_default_engine
from slot_engine.schemas.booking_schema import Actor, Booking, BookingStatus, StatusEntry
from slot_engine.schemas.schedule_schema import DaySchedule, TimeWindow, Weekday, WeeklySchedule

# Monday morning, one week before the dates most tests book on.
FIXED_NOW = datetime(2025, 3, 10, 8, 0)
NEXT_MONDAY = date(2025, 3, 17)
NEXT_TUESDAY = date(2025, 3, 18)
NEXT_SATURDAY = date(2025, 3, 22)

PROVIDER = "prov-1"


@pytest.fixture
def engine():
    return AvailabilityEngine(clock=lambda: FIXED_NOW)


@pytest.fixture
def provider(engine):
    """Provider working Monday 09:00-11:00 only, with a 15 minute buffer."""
    engine.update_weekly_schedule(PROVIDER, make_schedule({"monday": [("09:00", "11:00")]}, buffer_time=15))
    return PROVIDER


@pytest.fixture
def default_engine(engine):
    """Install the fixed-clock engine behind the tools modules."""
    set_default_engine(engine)
    yield engine
    set_default_engine(None)


def make_window(start: str, end: str, capacity: int = 1, current: int = 0, booked: bool = False) -> TimeWindow:
    return TimeWindow(
        start_time=start,
        end_time=end,
        max_concurrent_bookings=capacity,
        current_bookings=current,
        is_booked=booked,
    )


def make_schedule(hours: dict[str, list[tuple[str, str]]], capacity: int = 1, **settings) -> WeeklySchedule:
    """Build a schedule where each listed weekday is available with the given windows."""
    days = {
        Weekday(name): DaySchedule(
            is_available=True,
            time_slots=[make_window(start, end, capacity=capacity) for start, end in windows],
        )
        for name, windows in hours.items()
    }
    return WeeklySchedule(days=days, **settings)


def make_booking(
    booking_id: str = "bk_test",
    scheduled_date: date = NEXT_MONDAY,
    scheduled_time: str = "09:00",
    duration: int = 60,
    status: BookingStatus = BookingStatus.PENDING,
    provider_id: str = PROVIDER,
    customer_id: str = "cust-1",
    window_key: Optional[str] = "monday@09:00-11:00",
) -> Booking:
    """Helper to create a Booking record without going through the engine."""
    created = datetime(2025, 3, 10, 8, 0)
    return Booking(
        id=booking_id,
        booking_number="RZ-20250310-001",
        provider_id=provider_id,
        customer_id=customer_id,
        service_id="svc-1",
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration=duration,
        window_key=window_key,
        status=status,
        status_history=[StatusEntry(status=status, timestamp=created, actor=Actor.CUSTOMER)],
        created_at=created,
        updated_at=created,
    )


def book(
    engine: AvailabilityEngine,
    time: str = "09:00",
    day: date = NEXT_MONDAY,
    duration: int = 60,
    provider_id: str = PROVIDER,
    customer_id: str = "cust-1",
) -> Booking:
    """Create a booking through the engine with sensible defaults."""
    return engine.create_booking(provider_id, customer_id, "svc-1", day, time, duration)
