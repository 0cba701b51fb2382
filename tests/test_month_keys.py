"""Tests for month key helpers."""

import pytest
from datetime import date, datetime

from extrack.errors import InputValidationError
from extrack.models.month import (
    is_current_or_future,
    month_date_range,
    month_key_for,
    parse_month_key,
    shift_month_key,
)


class TestParseMonthKey:

    def test_valid_key(self):
        assert parse_month_key("2024-06") == (2024, 6)

    @pytest.mark.parametrize("bad", ["2024-6", "2024-13", "2024-00", "24-06", "2024/06", "", None])
    def test_malformed_keys_rejected(self, bad):
        with pytest.raises(InputValidationError):
            parse_month_key(bad)

    @pytest.mark.parametrize("out_of_range", ["0000-01", "9999-01", "9999-12"])
    def test_years_outside_calendar_rejected(self, out_of_range):
        """Test keys whose month or following month is not a valid date are refused."""
        with pytest.raises(InputValidationError, match="out of range"):
            month_date_range(out_of_range)

    def test_key_for_datetime(self):
        assert month_key_for(datetime(2023, 1, 31, 23, 59)) == "2023-01"
        assert month_key_for(date(2024, 12, 1)) == "2024-12"


class TestMonthDateRange:
    """Half-open [start, end) month boundaries."""

    def test_leap_february(self):
        """February 2024 includes the 29th and stops before 1 March."""
        start, end = month_date_range("2024-02")
        assert start == datetime(2024, 2, 1)
        assert end == datetime(2024, 3, 1)

        inside = datetime(2024, 2, 29, 23, 59, 59)
        outside = datetime(2024, 3, 1, 0, 0, 0)
        assert start <= inside < end
        assert not (start <= outside < end)

    def test_december_rolls_into_next_year(self):
        start, end = month_date_range("2024-12")
        assert start == datetime(2024, 12, 1)
        assert end == datetime(2025, 1, 1)

    def test_calendar_edges(self):
        assert month_date_range("0001-01")[0] == datetime(1, 1, 1)
        assert month_date_range("9998-12")[1] == datetime(9999, 1, 1)


class TestMonthArithmetic:

    def test_shift_backwards_across_year(self):
        assert shift_month_key("2024-02", -3) == "2023-11"

    def test_shift_forwards_across_year(self):
        assert shift_month_key("2024-11", 2) == "2025-01"

    def test_current_and_future_months(self):
        today = date(2024, 6, 15)
        assert is_current_or_future("2024-06", today)
        assert is_current_or_future("2025-01", today)
        assert not is_current_or_future("2024-05", today)
