"""
Offline console demo: walks through provider availability and bookings.

Drives the real engine (schedule store, exceptions, slot generator,
conflict resolver, booking lifecycle) in memory. No database, no network
calls. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario exception
    python console_demo.py --scenario cancel
"""

import argparse
from datetime import date, timedelta
from typing import Callable, Optional

from slot_engine.config import settings
from slot_engine.engine import AvailabilityEngine
from slot_engine.errors import SlotEngineError, SlotUnavailableError
from slot_engine.logging_context import new_request_id
from slot_engine.schemas.booking_schema import Actor
from slot_engine.schemas.schedule_schema import ExceptionType

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

PROVIDER = "prov-demo"
DURATION = settings.booking.default_slot_duration


def say(text: str) -> None:
    print(f"{GREEN}{BOLD}[engine]{RESET} {GREEN}{text}{RESET}")


def step(text: str) -> None:
    print(f"\n{BLUE}[caller]{RESET} {text}")


def system_log(text: str) -> None:
    print(f"{DIM}  >> {text}{RESET}")


def warn(text: str) -> None:
    print(f"{YELLOW}  !! {text}{RESET}")


def next_working_monday(today: Optional[date] = None) -> date:
    """The first Monday far enough ahead to clear the default notice period."""
    today = today or date.today()
    offset = (7 - today.weekday()) % 7 or 7
    if offset < 2:
        offset += 7
    return today + timedelta(days=offset)


def _show_slots(engine: AvailabilityEngine, day: date) -> list[str]:
    slots = engine.get_available_slots(PROVIDER, day, DURATION)
    say(f"{day:%A %d %b}: {', '.join(slots) if slots else 'no availability'}")
    return slots


def scenario_booking(engine: AvailabilityEngine, day: date) -> None:
    step(f"Provider sets Monday hours 09:00-12:00 with a {settings.schedule.buffer_time} min buffer")
    engine.update_weekly_schedule(PROVIDER, {
        "monday": {"isAvailable": True, "timeSlots": [{"start": "09:00", "end": "12:00", "isActive": True}]},
    })
    system_log("Legacy payload converted to canonical windows")
    _show_slots(engine, day)

    step("Customer books 09:00")
    booking = engine.create_booking(PROVIDER, "cust-ann", "svc-plumbing", day, "09:00", DURATION)
    say(f"Booking {booking.booking_number} is {booking.status.value}")
    _show_slots(engine, day)

    step("Second customer also tries 09:00")
    try:
        engine.create_booking(PROVIDER, "cust-bob", "svc-plumbing", day, "09:00", DURATION)
    except SlotUnavailableError as exc:
        warn(f"{exc.code}: {exc}")
        say(f"Suggested instead: {', '.join(exc.available_slots)}")

    step("Provider accepts, arrives, finishes")
    for action in (engine.accept_booking, engine.start_booking, engine.complete_booking):
        booking = action(booking.id)
        system_log(f"{booking.booking_number}: {booking.status.value}")


def scenario_exception(engine: AvailabilityEngine, day: date) -> None:
    engine.get_availability(PROVIDER)
    system_log("Default schedule materialized (Mon-Fri 09:00-17:00)")
    _show_slots(engine, day)

    step("Provider marks the day as a public holiday")
    engine.add_exception(PROVIDER, day, ExceptionType.UNAVAILABLE, "Public holiday")
    _show_slots(engine, day)

    step("Provider changes plans: afternoon only")
    engine.add_exception(
        PROVIDER, day, ExceptionType.CUSTOM_HOURS, "Afternoon only",
        [{"startTime": "13:00", "endTime": "16:00"}],
    )
    _show_slots(engine, day)

    step("Provider opens the following Saturday for weekend cover")
    saturday = day + timedelta(days=5)
    engine.add_exception(
        PROVIDER, saturday, ExceptionType.CUSTOM_HOURS, "Weekend cover",
        [{"startTime": "10:00", "endTime": "12:00"}],
    )
    _show_slots(engine, saturday)


def scenario_cancel(engine: AvailabilityEngine, day: date) -> None:
    engine.update_weekly_schedule(PROVIDER, {
        "days": {"monday": {"isAvailable": True, "timeSlots": [{"startTime": "09:00", "endTime": "11:00"}]}},
    })
    _show_slots(engine, day)

    step("Customer books 10:00")
    booking = engine.create_booking(PROVIDER, "cust-ann", "svc-electrical", day, "10:00", DURATION)
    _show_slots(engine, day)
    window = engine.get_day_schedule(PROVIDER, day).windows[0]
    system_log(f"Window {window.start_time}-{window.end_time}: {window.current_bookings}/{window.max_concurrent_bookings} booked")

    step("Customer cancels")
    booking = engine.cancel_booking(booking.id, Actor.CUSTOMER, "No longer needed")
    say(f"Booking {booking.booking_number} is {booking.status.value}")
    _show_slots(engine, day)

    step("Customer tries to cancel again")
    try:
        engine.cancel_booking(booking.id, Actor.CUSTOMER, "Double click")
    except SlotEngineError as exc:
        warn(str(exc))

    system_log(f"History: {' -> '.join(e.status.value for e in booking.status_history)}")


SCENARIOS: dict[str, Callable[[AvailabilityEngine, date], None]] = {
    "booking": scenario_booking,
    "exception": scenario_exception,
    "cancel": scenario_cancel,
}


def run_scenario(scenario: str, engine: Optional[AvailabilityEngine] = None) -> None:
    """Auto-play a scripted scenario against a fresh in-memory engine."""
    play = SCENARIOS.get(scenario)
    if play is None:
        print(f"{RED}Unknown scenario: {scenario}{RESET}")
        return

    print()
    print(f"{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  SLOT ENGINE - Scenario: {scenario}{RESET}")
    print(f"{BOLD}  Service: {settings.service_name}{RESET}")
    print(f"{BOLD}  Request: {new_request_id()}{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")

    play(engine or AvailabilityEngine(), next_working_monday())

    print(f"\n{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default="booking",
        help="Scripted walkthrough to play",
    )
    args = parser.parse_args()
    run_scenario(args.scenario)


if __name__ == "__main__":
    main()
