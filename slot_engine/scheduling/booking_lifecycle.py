"""
Finite state machine for the booking lifecycle.

Every status change goes through an explicit transition table. A trigger
that has no row for the current status is rejected with an error naming
the triggers that are allowed, and the booking is left untouched.

    pending ──accept──> confirmed ──start──> in_progress ──complete──> completed
       │                    │                     │
       ├──reject──> rejected│                     │
       └──────cancel────────┴────────cancel───────┴──> cancelled

Usage:
    lifecycle = BookingLifecycle()
    confirmed = lifecycle.apply(booking, BookingTrigger.ACCEPT, Actor.PROVIDER)
    assert confirmed.status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from slot_engine.errors import InvalidTransitionError, NotAuthorizedError
from slot_engine.schemas.booking_schema import (
    TERMINAL_STATUSES,
    Actor,
    Booking,
    BookingStatus,
    CancellationDetails,
    StatusEntry,
)

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that move a booking between statuses."""
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


@dataclass
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger
    provider_only: bool = False
    requires_reason: bool = False


class BookingLifecycle:
    """
    Stateless driver for booking status transitions.

    ``apply`` never mutates its input: it returns an updated copy with
    exactly one new history entry, or raises and leaves the caller's
    record as it was.
    """

    TRANSITIONS: list[Transition] = [
        # --- Provider decision ---
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED,
                   BookingTrigger.ACCEPT, provider_only=True),
        Transition(BookingStatus.PENDING, BookingStatus.REJECTED,
                   BookingTrigger.REJECT, provider_only=True, requires_reason=True),

        # --- Service delivery ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS,
                   BookingTrigger.START, provider_only=True),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
                   BookingTrigger.COMPLETE, provider_only=True),

        # --- Cancellation, by any party ---
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED,
                   BookingTrigger.CANCEL, requires_reason=True),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
                   BookingTrigger.CANCEL, requires_reason=True),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED,
                   BookingTrigger.CANCEL, requires_reason=True),
    ]

    def apply(
        self,
        booking: Booking,
        trigger: BookingTrigger,
        actor: Actor,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        estimated_arrival: Optional[datetime] = None,
        actual_duration: Optional[int] = None,
        at: Optional[datetime] = None,
    ) -> Booking:
        """
        Execute a transition on a copy of ``booking``.

        Args:
            booking: Current booking record.
            trigger: The lifecycle event.
            actor: Who is performing it.
            reason: Required for reject and cancel.
            notes: Free text stored on the history entry and provider response.
            estimated_arrival: Recorded on accept.
            actual_duration: Recorded on complete, in minutes.
            at: Timestamp for the change; defaults to now (UTC).

        Returns:
            The updated booking.

        Raises:
            InvalidTransitionError: If no transition exists from the current status.
            NotAuthorizedError: If a non-provider fires a provider-only trigger.
            ValueError: If a required reason is missing or actual_duration is not positive.
        """
        trigger = BookingTrigger(trigger)
        actor = Actor(actor)
        transition = self._find(booking.status, trigger)
        if transition is None:
            valid = [t.value for t in self.get_valid_triggers(booking.status)]
            raise InvalidTransitionError(
                f"No valid transition from '{booking.status.value}' "
                f"with trigger '{trigger.value}'. Valid triggers: {valid}",
                current_status=booking.status.value,
                trigger=trigger.value,
            )
        if transition.provider_only and actor != Actor.PROVIDER:
            raise NotAuthorizedError(
                f"Only the provider can {trigger.value} a booking (actor: {actor.value})"
            )
        if transition.requires_reason and not (reason and reason.strip()):
            raise ValueError(f"A reason is required to {trigger.value} a booking")
        if actual_duration is not None and actual_duration <= 0:
            raise ValueError(f"actual_duration must be positive, got {actual_duration}")

        at = at or datetime.now(timezone.utc)
        updated = booking.model_copy(deep=True)
        updated.status = transition.to_status
        updated.updated_at = at
        updated.status_history.append(
            StatusEntry(status=transition.to_status, timestamp=at, actor=actor, reason=reason, notes=notes)
        )

        response = updated.provider_response
        if trigger == BookingTrigger.ACCEPT:
            response.accepted_at = at
            response.estimated_arrival = estimated_arrival
        elif trigger == BookingTrigger.REJECT:
            response.rejected_at = at
            response.rejection_reason = reason
        elif trigger == BookingTrigger.START:
            response.arrival_time = at
        elif trigger == BookingTrigger.COMPLETE:
            response.completed_at = at
            updated.actual_duration = actual_duration
        elif trigger == BookingTrigger.CANCEL:
            updated.cancellation = CancellationDetails(cancelled_by=actor, cancelled_at=at, reason=reason)
        if notes and actor == Actor.PROVIDER:
            response.notes = notes

        logger.debug(
            "Booking %s: %s -> %s (trigger: %s, actor: %s)",
            booking.id, booking.status.value, updated.status.value, trigger.value, actor.value,
        )
        return updated

    def get_valid_triggers(self, status: BookingStatus) -> list[BookingTrigger]:
        """Return all triggers valid from ``status``."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == status]

    def is_terminal(self, status: BookingStatus) -> bool:
        return status in TERMINAL_STATUSES

    def _find(self, status: BookingStatus, trigger: BookingTrigger) -> Optional[Transition]:
        for t in self.TRANSITIONS:
            if t.from_status == status and t.trigger == trigger:
                return t
        return None
