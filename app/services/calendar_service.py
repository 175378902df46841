"""Calendar navigation for the booking date picker."""

import calendar
from datetime import date, timedelta

# Monday=0 .. Friday=4
WORKING_WEEKDAYS = frozenset(range(5))


def eligible_dates(year: int, month: int, today: date | None = None) -> list[date]:
    """
    List the bookable dates of a month.

    Weekdays only, never before ``today``. For the current month enumeration
    starts at ``today``; earlier months come back empty.

    Args:
        year: Calendar year
        month: Month number, January = 1
        today: Reference date, defaults to the local current date

    Returns:
        Dates in ascending order
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")

    today = today or date.today()
    last_day = calendar.monthrange(year, month)[1]
    start = date(year, month, 1)
    end = date(year, month, last_day)

    if (year, month) == (today.year, today.month):
        start = today
    elif start < today:
        return []

    days = (start + timedelta(days=offset) for offset in range((end - start).days + 1))
    return [day for day in days if day.weekday() in WORKING_WEEKDAYS]


def is_eligible_date(day: date, today: date | None = None) -> bool:
    """Check whether a single date can be booked."""
    today = today or date.today()
    return day >= today and day.weekday() in WORKING_WEEKDAYS


def previous_month(year: int, month: int) -> tuple[int, int]:
    """Step back one month, rolling over the year in January."""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_month(year: int, month: int) -> tuple[int, int]:
    """Step forward one month, rolling over the year in December."""
    if month == 12:
        return year + 1, 1
    return year, month + 1


def month_label(year: int, month: int) -> str:
    """Header text such as 'June 2025'."""
    return f"{calendar.month_name[month]} {year}"
