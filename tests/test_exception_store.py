"""Tests for date exceptions."""

from datetime import date, datetime

import pytest

from slot_engine.errors import InvalidScheduleError
from slot_engine.schemas.schedule_schema import ExceptionEntry, ExceptionType, SpecialPricing
from slot_engine.scheduling.schedule_store import ExceptionStore
from tests.conftest import make_window

DAY = date(2025, 3, 17)


@pytest.fixture
def store():
    return ExceptionStore()


class TestAddAndGet:
    def test_add_unavailable(self, store):
        entry = store.add("prov-1", DAY, ExceptionType.UNAVAILABLE, "Public holiday")
        assert entry.type == ExceptionType.UNAVAILABLE
        assert store.get("prov-1", DAY).reason == "Public holiday"

    def test_default_reason(self, store):
        assert store.add("prov-1", DAY, ExceptionType.UNAVAILABLE).reason == "Unavailable"

    def test_accepts_string_type_and_iso_date(self, store):
        store.add("prov-1", "2025-03-17", "unavailable")
        assert store.get("prov-1", DAY) is not None

    def test_time_of_day_ignored(self, store):
        store.add("prov-1", datetime(2025, 3, 17, 15, 30), ExceptionType.UNAVAILABLE)
        assert store.get("prov-1", DAY) is not None

    def test_last_write_wins(self, store):
        store.add("prov-1", DAY, ExceptionType.UNAVAILABLE, "Sick")
        store.add("prov-1", DAY, ExceptionType.CUSTOM_HOURS, "Half day", [make_window("09:00", "12:00")])
        entries = store.list_all("prov-1")
        assert len(entries) == 1
        assert entries[0].type == ExceptionType.CUSTOM_HOURS

    def test_get_missing_returns_none(self, store):
        assert store.get("prov-1", DAY) is None

    def test_providers_are_isolated(self, store):
        store.add("prov-1", DAY, ExceptionType.UNAVAILABLE)
        assert store.get("prov-2", DAY) is None


class TestCustomHours:
    def test_requires_windows(self, store):
        with pytest.raises(InvalidScheduleError, match="requires windows"):
            store.add("prov-1", DAY, ExceptionType.CUSTOM_HOURS)

    def test_overlapping_windows_rejected(self, store):
        windows = [make_window("09:00", "12:00"), make_window("11:00", "14:00")]
        with pytest.raises(InvalidScheduleError, match="overlaps"):
            store.add("prov-1", DAY, ExceptionType.CUSTOM_HOURS, custom_hours=windows)
        assert store.get("prov-1", DAY) is None

    def test_dict_windows_accepted(self, store):
        entry = store.add(
            "prov-1", DAY, ExceptionType.CUSTOM_HOURS,
            custom_hours=[{"startTime": "10:00", "endTime": "14:00"}],
        )
        assert entry.custom_hours[0].start_time == "10:00"

    def test_hours_not_allowed_on_unavailable(self, store):
        with pytest.raises(InvalidScheduleError, match="customHours"):
            store.add("prov-1", DAY, ExceptionType.UNAVAILABLE, custom_hours=[make_window("09:00", "10:00")])

    def test_single_window_document_loads(self):
        entry = ExceptionEntry.model_validate(
            {"date": "2025-03-17T00:00:00", "type": "custom_hours", "customHours": {"startTime": "10:00", "endTime": "12:00"}}
        )
        assert entry.date == DAY
        assert len(entry.custom_hours) == 1


class TestSpecialPricing:
    def test_requires_pricing(self, store):
        with pytest.raises(InvalidScheduleError, match="pricing"):
            store.add("prov-1", DAY, ExceptionType.SPECIAL_PRICING)

    def test_pricing_from_dict(self, store):
        entry = store.add(
            "prov-1", DAY, ExceptionType.SPECIAL_PRICING,
            special_pricing={"multiplier": 1.5, "reason": "Holiday rate"},
        )
        assert entry.special_pricing.multiplier == 1.5

    def test_pricing_not_allowed_on_other_types(self, store):
        with pytest.raises(InvalidScheduleError, match="specialPricing"):
            store.add("prov-1", DAY, ExceptionType.UNAVAILABLE, special_pricing=SpecialPricing(multiplier=2))

    def test_multiplier_must_be_positive(self):
        with pytest.raises(ValueError):
            SpecialPricing(multiplier=0)


class TestRemoveAndList:
    def test_remove(self, store):
        store.add("prov-1", DAY, ExceptionType.UNAVAILABLE)
        assert store.remove("prov-1", DAY) is True
        assert store.get("prov-1", DAY) is None

    def test_remove_missing_is_noop(self, store):
        assert store.remove("prov-1", DAY) is False

    def test_list_for_range_inclusive_and_sorted(self, store):
        for day in (date(2025, 3, 20), date(2025, 3, 17), date(2025, 3, 25), date(2025, 3, 18)):
            store.add("prov-1", day, ExceptionType.UNAVAILABLE)
        entries = store.list_for_range("prov-1", date(2025, 3, 17), date(2025, 3, 20))
        assert [e.date for e in entries] == [date(2025, 3, 17), date(2025, 3, 18), date(2025, 3, 20)]


class TestBlockPeriod:
    def test_blocks_every_day(self, store):
        entries = store.block_period("prov-1", date(2025, 3, 17), date(2025, 3, 21), "Vacation")
        assert len(entries) == 5
        assert all(e.type == ExceptionType.UNAVAILABLE and e.reason == "Vacation" for e in entries)

    def test_end_before_start(self, store):
        with pytest.raises(ValueError, match="before start"):
            store.block_period("prov-1", date(2025, 3, 21), date(2025, 3, 17))
