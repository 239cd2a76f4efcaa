"""Tests for the booking status state machine."""

from datetime import datetime, timezone

import pytest

from slot_engine.errors import InvalidTransitionError, NotAuthorizedError
from slot_engine.schemas.booking_schema import Actor, BookingStatus
from slot_engine.scheduling.booking_lifecycle import BookingLifecycle, BookingTrigger
from tests.conftest import make_booking


@pytest.fixture
def lifecycle():
    return BookingLifecycle()


class TestHappyPath:
    def test_accept_pending(self, lifecycle):
        booking = lifecycle.apply(make_booking(), BookingTrigger.ACCEPT, Actor.PROVIDER)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.provider_response.accepted_at is not None

    def test_accept_records_estimated_arrival(self, lifecycle):
        eta = datetime(2025, 3, 17, 8, 50, tzinfo=timezone.utc)
        booking = lifecycle.apply(make_booking(), BookingTrigger.ACCEPT, Actor.PROVIDER, estimated_arrival=eta)
        assert booking.provider_response.estimated_arrival == eta

    def test_start_confirmed(self, lifecycle):
        booking = lifecycle.apply(make_booking(status=BookingStatus.CONFIRMED), BookingTrigger.START, Actor.PROVIDER)
        assert booking.status == BookingStatus.IN_PROGRESS
        assert booking.provider_response.arrival_time is not None

    def test_complete_in_progress(self, lifecycle):
        booking = lifecycle.apply(
            make_booking(status=BookingStatus.IN_PROGRESS), BookingTrigger.COMPLETE, Actor.PROVIDER,
            actual_duration=75,
        )
        assert booking.status == BookingStatus.COMPLETED
        assert booking.actual_duration == 75
        assert booking.duration == 60

    def test_full_path(self, lifecycle):
        booking = make_booking()
        for trigger in (BookingTrigger.ACCEPT, BookingTrigger.START, BookingTrigger.COMPLETE):
            booking = lifecycle.apply(booking, trigger, Actor.PROVIDER)
        assert booking.status == BookingStatus.COMPLETED
        assert [e.status for e in booking.status_history] == [
            BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
        ]
        assert lifecycle.is_terminal(booking.status)


class TestRejectAndCancel:
    def test_reject_pending(self, lifecycle):
        booking = lifecycle.apply(make_booking(), BookingTrigger.REJECT, Actor.PROVIDER, reason="Fully booked")
        assert booking.status == BookingStatus.REJECTED
        assert booking.provider_response.rejection_reason == "Fully booked"

    def test_reject_requires_reason(self, lifecycle):
        with pytest.raises(ValueError, match="reason"):
            lifecycle.apply(make_booking(), BookingTrigger.REJECT, Actor.PROVIDER, reason="  ")

    def test_reject_only_from_pending(self, lifecycle):
        with pytest.raises(InvalidTransitionError):
            lifecycle.apply(
                make_booking(status=BookingStatus.CONFIRMED), BookingTrigger.REJECT, Actor.PROVIDER, reason="No"
            )

    def test_customer_cancels_pending(self, lifecycle):
        booking = lifecycle.apply(make_booking(), BookingTrigger.CANCEL, Actor.CUSTOMER, reason="Plans changed")
        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancellation.cancelled_by == Actor.CUSTOMER
        assert booking.cancellation.reason == "Plans changed"

    def test_provider_cancels_in_progress(self, lifecycle):
        booking = lifecycle.apply(
            make_booking(status=BookingStatus.IN_PROGRESS), BookingTrigger.CANCEL, Actor.PROVIDER, reason="Emergency"
        )
        assert booking.status == BookingStatus.CANCELLED

    def test_cancel_requires_reason(self, lifecycle):
        with pytest.raises(ValueError, match="reason"):
            lifecycle.apply(make_booking(), BookingTrigger.CANCEL, Actor.CUSTOMER)


class TestGuards:
    def test_customer_cannot_accept(self, lifecycle):
        booking = make_booking()
        with pytest.raises(NotAuthorizedError, match="provider"):
            lifecycle.apply(booking, BookingTrigger.ACCEPT, Actor.CUSTOMER)
        assert booking.status == BookingStatus.PENDING
        assert len(booking.status_history) == 1

    def test_admin_cannot_complete(self, lifecycle):
        with pytest.raises(NotAuthorizedError):
            lifecycle.apply(make_booking(status=BookingStatus.IN_PROGRESS), BookingTrigger.COMPLETE, Actor.ADMIN)

    def test_invalid_transition_lists_valid_triggers(self, lifecycle):
        with pytest.raises(InvalidTransitionError, match="Valid triggers") as exc_info:
            lifecycle.apply(make_booking(), BookingTrigger.COMPLETE, Actor.PROVIDER)
        assert exc_info.value.current_status == "pending"
        assert exc_info.value.trigger == "complete"

    def test_non_positive_actual_duration(self, lifecycle):
        with pytest.raises(ValueError, match="actual_duration"):
            lifecycle.apply(
                make_booking(status=BookingStatus.IN_PROGRESS), BookingTrigger.COMPLETE, Actor.PROVIDER,
                actual_duration=0,
            )


class TestTerminalStates:
    def test_no_transitions_out_of_terminal_states(self, lifecycle):
        for status in (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED):
            booking = make_booking(status=status)
            assert lifecycle.get_valid_triggers(status) == []
            for trigger in BookingTrigger:
                with pytest.raises(InvalidTransitionError):
                    lifecycle.apply(booking, trigger, Actor.PROVIDER, reason="try")
            assert booking.status == status
            assert len(booking.status_history) == 1

    def test_active_states_not_terminal(self, lifecycle):
        assert not lifecycle.is_terminal(BookingStatus.PENDING)
        assert not lifecycle.is_terminal(BookingStatus.IN_PROGRESS)


class TestHistory:
    def test_each_transition_appends_one_entry(self, lifecycle):
        booking = make_booking()
        accepted = lifecycle.apply(booking, BookingTrigger.ACCEPT, Actor.PROVIDER, notes="On my way")
        assert len(accepted.status_history) == len(booking.status_history) + 1
        entry = accepted.status_history[-1]
        assert entry.status == BookingStatus.CONFIRMED
        assert entry.actor == Actor.PROVIDER
        assert entry.notes == "On my way"
        assert accepted.provider_response.notes == "On my way"

    def test_input_record_not_mutated(self, lifecycle):
        booking = make_booking()
        lifecycle.apply(booking, BookingTrigger.ACCEPT, Actor.PROVIDER)
        assert booking.status == BookingStatus.PENDING
        assert len(booking.status_history) == 1

    def test_valid_triggers_from_pending(self, lifecycle):
        assert lifecycle.get_valid_triggers(BookingStatus.PENDING) == [
            BookingTrigger.ACCEPT, BookingTrigger.REJECT, BookingTrigger.CANCEL,
        ]

    def test_valid_triggers_from_confirmed(self, lifecycle):
        assert lifecycle.get_valid_triggers(BookingStatus.CONFIRMED) == [BookingTrigger.START, BookingTrigger.CANCEL]
