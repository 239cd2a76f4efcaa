"""Tests for the booking repository and the occupancy ledger."""

from datetime import date, datetime

import pytest

from slot_engine.errors import DuplicateBookingError, NotFoundError
from slot_engine.schemas.booking_schema import BookingStatus
from slot_engine.scheduling.booking_repository import BookingRepository
from slot_engine.scheduling.occupancy import OccupancyLedger, window_key
from tests.conftest import NEXT_MONDAY, NEXT_TUESDAY, make_booking, make_window


@pytest.fixture
def repo():
    return BookingRepository()


class TestBookingRepository:
    def test_insert_and_get(self, repo):
        repo.insert(make_booking("b1"))
        assert repo.get("b1").id == "b1"

    def test_get_unknown(self, repo):
        with pytest.raises(NotFoundError, match="b404"):
            repo.get("b404")

    def test_duplicate_id(self, repo):
        repo.insert(make_booking("b1"))
        with pytest.raises(DuplicateBookingError):
            repo.insert(make_booking("b1", scheduled_time="10:00"), enforce_unique_start=False)

    def test_active_start_is_unique(self, repo):
        repo.insert(make_booking("b1"))
        with pytest.raises(DuplicateBookingError, match="already has an active booking"):
            repo.insert(make_booking("b2"))

    def test_uniqueness_can_be_relaxed_for_shared_windows(self, repo):
        repo.insert(make_booking("b1"))
        repo.insert(make_booking("b2"), enforce_unique_start=False)
        assert len(repo.find(provider_id="prov-1", start=NEXT_MONDAY, end=NEXT_MONDAY)) == 2

    def test_cancelled_booking_frees_the_start(self, repo):
        repo.insert(make_booking("b1", status=BookingStatus.CANCELLED))
        repo.insert(make_booking("b2"))

    def test_save_requires_existing(self, repo):
        with pytest.raises(NotFoundError):
            repo.save(make_booking("b1"))

    def test_stored_copy_isolated(self, repo):
        booking = make_booking("b1")
        repo.insert(booking)
        booking.status = BookingStatus.CANCELLED
        assert repo.get("b1").status == BookingStatus.PENDING

    def test_find_filters(self, repo):
        repo.insert(make_booking("b1", scheduled_time="11:00"))
        repo.insert(make_booking("b2", scheduled_time="09:00", customer_id="cust-2"))
        repo.insert(make_booking("b3", scheduled_date=NEXT_TUESDAY, status=BookingStatus.CONFIRMED))
        repo.insert(make_booking("b4", provider_id="prov-2"))

        assert [b.id for b in repo.find(provider_id="prov-1")] == ["b2", "b1", "b3"]
        assert [b.id for b in repo.find(customer_id="cust-2")] == ["b2"]
        assert [b.id for b in repo.find(statuses=[BookingStatus.CONFIRMED])] == ["b3"]
        assert [b.id for b in repo.find(provider_id="prov-1", start=NEXT_TUESDAY)] == ["b3"]

    def test_overlapping_days_includes_previous_day(self, repo):
        repo.insert(make_booking("b1", scheduled_date=date(2025, 3, 16), scheduled_time="23:30"))
        found = repo.overlapping_days("prov-1", datetime(2025, 3, 17, 0, 0), datetime(2025, 3, 17, 1, 0))
        assert [b.id for b in found] == ["b1"]


class TestOccupancyLedger:
    def test_window_key(self):
        assert window_key("monday", make_window("09:00", "17:00")) == "monday@09:00-17:00"

    def test_hold_and_release(self):
        ledger = OccupancyLedger()
        assert ledger.hold("prov-1", NEXT_MONDAY, "k", "b1") == 1
        assert ledger.hold("prov-1", NEXT_MONDAY, "k", "b2") == 2
        assert ledger.release("prov-1", NEXT_MONDAY, "k", "b1") == 1
        assert ledger.current_bookings("prov-1", NEXT_MONDAY, "k") == 1

    def test_hold_is_idempotent(self):
        ledger = OccupancyLedger()
        ledger.hold("prov-1", NEXT_MONDAY, "k", "b1")
        assert ledger.hold("prov-1", NEXT_MONDAY, "k", "b1") == 1
        assert len(ledger.history()) == 1

    def test_double_release_is_noop(self):
        ledger = OccupancyLedger()
        ledger.hold("prov-1", NEXT_MONDAY, "k", "b1")
        ledger.release("prov-1", NEXT_MONDAY, "k", "b1")
        assert ledger.release("prov-1", NEXT_MONDAY, "k", "b1") == 0
        assert [e.action for e in ledger.history()] == ["hold", "release"]

    def test_occupancy_is_date_scoped(self):
        ledger = OccupancyLedger()
        ledger.hold("prov-1", NEXT_MONDAY, "k", "b1")
        assert ledger.current_bookings("prov-1", date(2025, 3, 24), "k") == 0

    def test_history_filtered_by_provider(self):
        ledger = OccupancyLedger()
        ledger.hold("prov-1", NEXT_MONDAY, "k", "b1")
        ledger.hold("prov-2", NEXT_MONDAY, "k", "b2")
        assert [e.booking_id for e in ledger.history("prov-2")] == ["b2"]

    def test_back_to_back_spans_occupy_one_unit(self):
        ledger = OccupancyLedger()
        ledger.hold("prov-1", NEXT_MONDAY, "k", "b1", (540, 600))
        assert ledger.hold("prov-1", NEXT_MONDAY, "k", "b2", (600, 660)) == 1

    def test_overlapping_spans_stack(self):
        ledger = OccupancyLedger()
        ledger.hold("prov-1", NEXT_MONDAY, "k", "b1", (540, 600))
        assert ledger.hold("prov-1", NEXT_MONDAY, "k", "b2", (570, 630)) == 2
        assert ledger.release("prov-1", NEXT_MONDAY, "k", "b1") == 1
