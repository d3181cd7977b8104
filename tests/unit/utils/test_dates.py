"""
Unit Tests for reporting periods and date ranges
"""
import pytest
from datetime import datetime, timedelta, timezone

from repairflow.utils.dates import (
    DateRange,
    Period,
    calculate_change,
    create_date_range,
    day_range,
    days_between,
    get_previous_period_range,
    shift_months,
    to_naive_utc,
)

END_OF_DAY = dict(hour=23, minute=59, second=59, microsecond=999999)


class TestCreateDateRange:

    def test_daily(self):
        now = datetime(2024, 3, 15, 10, 30)
        current = create_date_range(Period.DAILY, now)
        assert current.start == datetime(2024, 3, 15)
        assert current.end == datetime(2024, 3, 15, **END_OF_DAY)

    def test_weekly_starts_at_midnight_seven_days_ago(self):
        now = datetime(2024, 3, 15, 10, 30)
        current = create_date_range(Period.WEEKLY, now)
        assert current.start == datetime(2024, 3, 8)
        assert current.end == now

    def test_monthly(self):
        now = datetime(2024, 3, 31, 12)
        assert create_date_range(Period.MONTHLY, now).start == datetime(2024, 3, 1)

    def test_yearly(self):
        now = datetime(2024, 6, 10)
        assert create_date_range("yearly", now).start == datetime(2024, 1, 1)


class TestPreviousPeriod:

    def test_daily(self):
        current = create_date_range(Period.DAILY, datetime(2024, 3, 15, 10, 30))
        previous = get_previous_period_range(current, Period.DAILY)
        assert previous.start == datetime(2024, 3, 14)
        assert previous.end == datetime(2024, 3, 14, **END_OF_DAY)

    def test_weekly_has_same_length(self):
        current = create_date_range(Period.WEEKLY, datetime(2024, 3, 15, 10, 30))
        previous = get_previous_period_range(current, Period.WEEKLY)
        assert previous.start == datetime(2024, 2, 29, 13, 30)
        assert previous.end == current.start - timedelta(microseconds=1)

    def test_monthly_is_whole_previous_month(self):
        current = create_date_range(Period.MONTHLY, datetime(2024, 3, 31, 12))
        previous = get_previous_period_range(current, Period.MONTHLY)
        assert previous.start == datetime(2024, 2, 1)
        assert previous.end == datetime(2024, 2, 29, **END_OF_DAY)

    def test_yearly(self):
        current = create_date_range(Period.YEARLY, datetime(2024, 6, 10))
        previous = get_previous_period_range(current, Period.YEARLY)
        assert previous.start == datetime(2023, 1, 1)
        assert previous.end == datetime(2023, 12, 31, **END_OF_DAY)


class TestShiftMonths:

    def test_clamps_to_month_end(self):
        assert shift_months(datetime(2024, 3, 31), -1) == datetime(2024, 2, 29)
        assert shift_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_crosses_year(self):
        assert shift_months(datetime(2024, 1, 15), -12) == datetime(2023, 1, 15)
        assert shift_months(datetime(2024, 11, 15), 3) == datetime(2025, 2, 15)


class TestCalculateChange:

    @pytest.mark.parametrize("current,previous,expected", [
        (150, 100, 50),
        (50, 100, -50),
        (1, 3, -67),
        (10, 0, 100),
        (0, 0, 0),
        (-10, -20, 50),
    ])
    def test_calculate_change(self, current, previous, expected):
        assert calculate_change(current, previous) == expected


def test_days_between_floors():
    assert days_between(datetime(2024, 1, 1), datetime(2024, 1, 15, 23)) == 14


def test_date_range_contains():
    today = day_range(datetime(2024, 5, 1, 8))
    assert today.contains(datetime(2024, 5, 1, 23, 59))
    assert not today.contains(datetime(2024, 5, 2))
    assert not today.contains(None)
    assert DateRange(today.start, today.end).to_dict()["start_date"] == "2024-05-01T00:00:00"


class TestToNaiveUtc:

    def test_aware_value_converted_to_utc(self):
        offset = timezone(timedelta(hours=2))
        assert to_naive_utc(datetime(2024, 5, 1, 1, 30, tzinfo=offset)) == datetime(2024, 4, 30, 23, 30)

    def test_naive_and_none_pass_through(self):
        assert to_naive_utc(datetime(2024, 5, 1, 8)) == datetime(2024, 5, 1, 8)
        assert to_naive_utc(None) is None
