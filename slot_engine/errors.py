"""
Exception taxonomy for the slot engine.

Raised by the stores, the engine, and the booking lifecycle; callers map
them onto their transport (404 for NotFoundError, 409 for
SlotUnavailableError, and so on).
"""

from typing import Optional


class SlotEngineError(Exception):
    """Base exception for all slot engine errors."""


class InvalidScheduleError(SlotEngineError):
    """Raised when a schedule or exception payload violates window invariants.

    Nothing is persisted when this is raised.
    """

    def __init__(self, message: str, day: Optional[str] = None, field: Optional[str] = None) -> None:
        self.day = day
        self.field = field
        location = ", ".join(part for part in (day, field) if part)
        super().__init__(f"{message} ({location})" if location else message)


class NotFoundError(SlotEngineError):
    """Raised for an unknown provider schedule or booking id."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class InvalidTransitionError(SlotEngineError):
    """Raised when a lifecycle transition is not valid from the current status."""

    def __init__(self, message: str, current_status: str, trigger: str) -> None:
        self.current_status = current_status
        self.trigger = trigger
        super().__init__(message)


class NotAuthorizedError(SlotEngineError):
    """Raised when an actor attempts a transition reserved for another party."""


class SlotUnavailableError(SlotEngineError):
    """Raised when a requested slot cannot be booked.

    ``code`` tells the caller why; ``available_slots`` carries the
    currently bookable start times where a suggestion makes sense.
    Callers are expected to re-request availability and retry.
    """

    NO_SCHEDULE = "NO_SCHEDULE"
    NOT_AVAILABLE_DAY = "NOT_AVAILABLE_DAY"
    DATE_EXCEPTION = "DATE_EXCEPTION"
    NOT_IN_SLOT = "NOT_IN_SLOT"
    PAST_SLOT = "PAST_SLOT"
    BEYOND_HORIZON = "BEYOND_HORIZON"
    CONFLICT = "CONFLICT"
    RACE_LOST = "RACE_LOST"

    def __init__(self, message: str, code: str, available_slots: Optional[list[str]] = None) -> None:
        self.code = code
        self.available_slots = list(available_slots or [])
        super().__init__(message)


class DuplicateBookingError(SlotEngineError):
    """Raised by the booking repository when its uniqueness constraint rejects an insert."""
