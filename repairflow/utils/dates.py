"""
Reporting periods and date-range helpers used by finance and dashboard.

All datetimes are naive UTC, matching the `datetime.utcnow` columns.
"""
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from enum import Enum
from typing import Optional, Union


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment <= self.end

    def to_dict(self) -> dict:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat()}


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes from query strings (e.g. a trailing Z) as naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(value: Union[date, datetime]) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.min)


def end_of_day(value: Union[date, datetime]) -> datetime:
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max)


def day_range(value: Union[date, datetime]) -> DateRange:
    return DateRange(start_of_day(value), end_of_day(value))


def shift_months(value: datetime, months: int) -> datetime:
    """Same day-of-month `months` away, clamped to the last day of the target month"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    if month == 12:
        next_month_first = date(year + 1, 1, 1)
    else:
        next_month_first = date(year, month + 1, 1)
    last_day = (next_month_first - timedelta(days=1)).day
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def create_date_range(period: Period = Period.WEEKLY, now: Optional[datetime] = None) -> DateRange:
    """
    Current reporting window for a period.

    daily   - today, midnight to end of day
    weekly  - midnight seven days ago until now
    monthly - first of this month until now
    yearly  - first of January until now
    """
    now = now or datetime.utcnow()
    period = Period(period)

    if period == Period.DAILY:
        return day_range(now)
    if period == Period.MONTHLY:
        return DateRange(datetime(now.year, now.month, 1), now)
    if period == Period.YEARLY:
        return DateRange(datetime(now.year, 1, 1), now)
    return DateRange(start_of_day(now - timedelta(days=7)), now)


def get_previous_period_range(current: DateRange, period: Period = Period.WEEKLY) -> DateRange:
    """The window immediately before `current`, ending one microsecond before it starts"""
    period = Period(period)
    end = current.start - timedelta(microseconds=1)

    if period == Period.DAILY:
        return DateRange(current.start - timedelta(days=1), end)
    if period == Period.MONTHLY:
        return DateRange(shift_months(current.start, -1), end)
    if period == Period.YEARLY:
        return DateRange(shift_months(current.start, -12), end)
    return DateRange(current.start - current.duration, end)


def calculate_change(current: float, previous: float) -> int:
    """Whole-number percentage change; 100 when growing from zero"""
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / abs(previous) * 100)


def days_between(start: datetime, end: datetime) -> int:
    """Floored number of whole days from start to end"""
    return int((end - start).total_seconds() // 86400)
