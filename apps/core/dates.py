"""
Reporting calendar helpers.

Weeks start on Monday. A deal is reported on its deposit date; when the
carrier has not deposited yet the deposit is projected three business days
after the effective date, and when neither is known the creation date is used.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from django.utils import timezone

from apps.core.constants import DEPOSIT_BUSINESS_DAYS, WEEKDAY_NAMES


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range."""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f'Date range ends ({self.end}) before it starts ({self.start})')

    def __contains__(self, value: date) -> bool:
        return self.start <= value <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @classmethod
    def for_day(cls, day: date) -> 'DateRange':
        return cls(day, day)

    @classmethod
    def for_week(cls, day: date) -> 'DateRange':
        """Monday through Sunday of the week containing ``day``."""
        start = get_week_start(day)
        return cls(start, start + timedelta(days=6))

    @classmethod
    def for_month(cls, day: date) -> 'DateRange':
        start = day.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        return cls(start, next_month - timedelta(days=1))

    @classmethod
    def month_to_date(cls, day: date) -> 'DateRange':
        return cls(day.replace(day=1), day)

    @classmethod
    def year_to_date(cls, day: date) -> 'DateRange':
        return cls(day.replace(month=1, day=1), day)

    def as_dict(self) -> dict:
        return {'start': self.start.isoformat(), 'end': self.end.isoformat()}


def get_week_start(day: date) -> date:
    """Monday of the week containing ``day``; Sunday maps six days back."""
    return day - timedelta(days=day.weekday())


def get_week_end(day: date) -> date:
    return get_week_start(day) + timedelta(days=6)


def get_week_dates(week_start: date) -> list[date]:
    """The seven dates Monday through Sunday."""
    return [week_start + timedelta(days=i) for i in range(7)]


def day_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def add_business_days(start: date, days: int) -> date:
    """Add business days to a date, skipping Saturdays and Sundays."""
    result = start
    added = 0
    while added < days:
        result += timedelta(days=1)
        if result.weekday() < 5:
            added += 1
    return result


def calculate_deposit_date(effective_date: date) -> date:
    return add_business_days(effective_date, DEPOSIT_BUSINESS_DAYS)


def local_date(value: datetime | date) -> date:
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localdate(value)
        return value.date()
    return value


def reporting_date(deal) -> date:
    """
    Date a deal counts toward for every windowed report.

    Deposit date, else effective date plus three business days, else the
    date the deal was created.
    """
    if deal.deposit_date:
        return deal.deposit_date
    if deal.effective_date:
        return calculate_deposit_date(deal.effective_date)
    return local_date(deal.created_at)


def format_week_range(week_start: date) -> str:
    """Human label such as "Jan 6 - Jan 12, 2025"."""
    week_end = week_start + timedelta(days=6)
    return (
        f"{week_start.strftime('%b')} {week_start.day} - "
        f"{week_end.strftime('%b')} {week_end.day}, {week_end.year}"
    )
