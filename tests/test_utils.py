"""Tests for shared time helpers and the request logging context."""

import logging
from datetime import date, datetime

import pytest

from slot_engine.logging_context import (
    RequestIdFilter,
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)
from slot_engine.utils import at_time, date_range, format_hhmm, normalize_hhmm, parse_hhmm, to_date


class TestParseHhmm:
    def test_parses_padded(self):
        assert parse_hhmm("09:30") == 570

    def test_parses_unpadded_hour(self):
        assert parse_hhmm("9:05") == 545

    def test_midnight(self):
        assert parse_hhmm("00:00") == 0

    def test_missing_value(self):
        with pytest.raises(ValueError, match="missing"):
            parse_hhmm(None)

    def test_malformed_value(self):
        with pytest.raises(ValueError, match="HH:MM"):
            parse_hhmm("9am")

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="out of range"):
            parse_hhmm("24:00")


class TestFormatting:
    def test_format_hhmm(self):
        assert format_hhmm(570) == "09:30"

    def test_normalize_pads_hour(self):
        assert normalize_hhmm("9:00") == "09:00"

    def test_at_time_combines_date_and_clock(self):
        assert at_time(date(2025, 3, 17), "10:15") == datetime(2025, 3, 17, 10, 15)


class TestToDate:
    def test_date_passthrough(self):
        assert to_date(date(2025, 3, 17)) == date(2025, 3, 17)

    def test_datetime_drops_time(self):
        assert to_date(datetime(2025, 3, 17, 23, 59)) == date(2025, 3, 17)

    def test_iso_string(self):
        assert to_date("2025-03-17") == date(2025, 3, 17)

    def test_iso_datetime_string(self):
        assert to_date("2025-03-17T14:00:00") == date(2025, 3, 17)

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            to_date(20250317)


class TestDateRange:
    def test_inclusive(self):
        days = date_range(date(2025, 3, 17), date(2025, 3, 19))
        assert days == [date(2025, 3, 17), date(2025, 3, 18), date(2025, 3, 19)]

    def test_single_day(self):
        assert date_range(date(2025, 3, 17), date(2025, 3, 17)) == [date(2025, 3, 17)]

    def test_reversed_is_empty(self):
        assert date_range(date(2025, 3, 19), date(2025, 3, 17)) == []


class TestRequestContext:
    def test_set_and_get(self):
        set_request_id("REQ-test01")
        assert get_request_id() == "REQ-test01"

    def test_new_request_id_format(self):
        request_id = new_request_id()
        assert request_id.startswith("REQ-")
        assert len(request_id) == 12
        assert get_request_id() == request_id

    def test_filter_injects_request_id(self):
        set_request_id("REQ-filter")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert RequestIdFilter().filter(record)
        assert record.request_id == "REQ-filter"

    def test_request_logger_adds_filter_once(self):
        logger = get_request_logger("slot_engine.test_logger")
        get_request_logger("slot_engine.test_logger")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1
