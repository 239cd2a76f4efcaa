"""
Booking operations.

Caller-facing wrappers around the engine's booking lifecycle. Business
failures (slot taken, wrong status, wrong actor, unknown booking) come
back as ``success: False`` with a message and, for unavailable slots, a
reason code and the times that are still free.
"""

from typing import Any, Callable, Optional, TypedDict

from slot_engine.engine import get_default_engine
from slot_engine.errors import (
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
    SlotUnavailableError,
)
from slot_engine.logging_context import get_request_id, get_request_logger, new_request_id
from slot_engine.schemas.booking_schema import Actor, Booking, BookingStatus

logger = get_request_logger(__name__)


class BookingResult(TypedDict, total=False):
    """Result from create_booking and every lifecycle operation."""

    success: bool
    message: str
    booking_id: str
    booking_number: str
    status: str
    code: str
    available_slots: list[str]
    details: dict[str, Any]


def create_booking(
    provider_id: str,
    customer_id: str,
    service_id: str,
    date: str,
    time: str,
    duration: int,
    notes: Optional[str] = None,
) -> BookingResult:
    """Book a slot and return the confirmation details."""
    missing = [
        field_name
        for field_name, value in [
            ("provider_id", provider_id),
            ("customer_id", customer_id),
            ("service_id", service_id),
            ("date", date),
            ("time", time),
        ]
        if not value or not str(value).strip()
    ]
    if missing:
        return {
            "success": False,
            "message": f"Cannot create booking - missing required fields: {', '.join(missing)}.",
        }

    new_request_id()
    try:
        booking = get_default_engine().create_booking(
            provider_id, customer_id, service_id, date, time, duration, notes
        )
    except SlotUnavailableError as exc:
        logger.info("Booking refused [%s] for %s on %s %s: %s", get_request_id(), provider_id, date, time, exc.code)
        return {
            "success": False,
            "message": str(exc),
            "code": exc.code,
            "available_slots": exc.available_slots,
        }
    except ValueError as exc:
        return {"success": False, "message": f"Invalid booking request: {exc}"}
    return _result(booking, f"Booking {booking.booking_number} {booking.status.value} for {date} at {time}.")


def accept_booking(booking_id: str, actor: str = "provider", notes: Optional[str] = None) -> BookingResult:
    return _run(lambda e: e.accept_booking(booking_id, Actor(actor), notes=notes), "accepted")


def reject_booking(booking_id: str, reason: str, actor: str = "provider") -> BookingResult:
    return _run(lambda e: e.reject_booking(booking_id, reason, Actor(actor)), "rejected")


def start_booking(booking_id: str, actor: str = "provider") -> BookingResult:
    return _run(lambda e: e.start_booking(booking_id, Actor(actor)), "started")


def complete_booking(
    booking_id: str, actor: str = "provider", actual_duration: Optional[int] = None
) -> BookingResult:
    return _run(
        lambda e: e.complete_booking(booking_id, Actor(actor), actual_duration=actual_duration), "completed"
    )


def cancel_booking(booking_id: str, actor: str, reason: str) -> BookingResult:
    """Cancel a booking; its slot becomes bookable again immediately."""
    return _run(lambda e: e.cancel_booking(booking_id, Actor(actor), reason), "cancelled")


def get_booking(booking_id: str) -> Optional[dict[str, Any]]:
    """Retrieve a booking by id."""
    try:
        booking = get_default_engine().get_booking(booking_id)
    except NotFoundError:
        return None
    return booking.model_dump(mode="json")


def list_provider_bookings(
    provider_id: str,
    status: Optional[list[str]] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> list[dict[str, Any]]:
    bookings = get_default_engine().list_provider_bookings(
        provider_id, [BookingStatus(s) for s in status] if status else None, start, end
    )
    return [b.model_dump(mode="json") for b in bookings]


def list_customer_bookings(
    customer_id: str,
    status: Optional[list[str]] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> list[dict[str, Any]]:
    bookings = get_default_engine().list_customer_bookings(
        customer_id, [BookingStatus(s) for s in status] if status else None, start, end
    )
    return [b.model_dump(mode="json") for b in bookings]


def _run(operation: Callable, verb: str) -> BookingResult:
    try:
        booking = operation(get_default_engine())
    except (NotFoundError, InvalidTransitionError, NotAuthorizedError, ValueError) as exc:
        return {"success": False, "message": str(exc)}
    return _result(booking, f"Booking {booking.booking_number} {verb}.")


def _result(booking: Booking, message: str) -> BookingResult:
    return {
        "success": True,
        "message": message,
        "booking_id": booking.id,
        "booking_number": booking.booking_number,
        "status": booking.status.value,
        "details": booking.model_dump(mode="json"),
    }


def reset() -> None:
    """Clear all bookings, capacity holds and booking numbering. Used by test fixtures for isolation."""
    get_default_engine().reset_bookings()
