"""
Calendar helpers for the allowance schedule.

All functions work at calendar-day granularity and take an explicit
``as_of`` so callers can inject "today".
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union


WEEK = timedelta(days=7)

DateLike = Union[date, datetime]


def to_date(value: DateLike) -> date:
    """Collapse a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def age(birthday: date, as_of: Optional[DateLike] = None) -> int:
    """
    Whole years elapsed since ``birthday``.

    Compares month/day pairs rather than dividing a day count, so leap
    years need no special handling. A Feb 29 birthday ticks over on
    Mar 1 in non-leap years. Dates before the birthday yield 0.
    """
    today = to_date(as_of) if as_of is not None else date.today()
    if today < birthday:
        return 0
    years = today.year - birthday.year
    if (today.month, today.day) < (birthday.month, birthday.day):
        years -= 1
    return years


def next_occurrence(target_weekday: int, as_of: Optional[DateLike] = None) -> date:
    """
    Next date falling on ``target_weekday`` (Monday is 0).

    Always strictly in the future: if ``as_of`` already is that weekday
    the result is a week later.
    """
    if not 0 <= target_weekday <= 6:
        raise ValueError(f"Weekday must be between 0 and 6, got {target_weekday}")
    today = to_date(as_of) if as_of is not None else date.today()
    delta = (target_weekday - today.weekday()) % 7
    if delta == 0:
        delta = 7
    return today + timedelta(days=delta)


def enumerate_completed_weeks(
    since: DateLike,
    as_of: DateLike,
) -> list[tuple[date, date]]:
    """
    Fully elapsed 7-day windows after the week that began at ``since``.

    The first window starts 7 days after ``since``; each window is
    ``(start, start + 6 days)`` and is included only once ``as_of`` is
    at least 7 days past its start. Fewer than 14 days between the two
    dates therefore yields nothing.
    """
    last = to_date(since)
    today = to_date(as_of)

    weeks = []
    week_start = last + WEEK
    while (today - week_start).days >= 7:
        weeks.append((week_start, week_start + timedelta(days=6)))
        week_start += WEEK
    return weeks


def week_range_label(start: date) -> str:
    """Human-readable label such as ``Jan 8 - Jan 14, 2024``."""
    end = start + timedelta(days=6)
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {start.year}"
