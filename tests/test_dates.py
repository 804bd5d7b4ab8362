"""Tests for the calendar helpers."""

import pytest
from datetime import date, datetime, timedelta, timezone

from allowance_tracker.core.dates import (
    age,
    enumerate_completed_weeks,
    next_occurrence,
    to_date,
    week_range_label,
)


class TestAge:
    """Tests for age calculation."""

    def test_whole_years(self):
        """Test a birthday already passed this year."""
        assert age(date(2014, 3, 15), date(2024, 6, 1)) == 10

    def test_birthday_not_yet_reached(self):
        """Test the year is not counted before the month/day comes round."""
        assert age(date(2014, 3, 15), date(2024, 3, 14)) == 9

    def test_increases_on_anniversary(self):
        """Test age goes up by exactly one on the birthday."""
        birthday = date(2016, 1, 10)
        assert age(birthday, date(2024, 1, 9)) == 7
        assert age(birthday, date(2024, 1, 10)) == 8

    def test_never_decreases(self):
        """Test age is non-decreasing day by day across two years."""
        birthday = date(2012, 2, 29)
        day = date(2022, 1, 1)
        previous = age(birthday, day)
        for _ in range(730):
            day += timedelta(days=1)
            current = age(birthday, day)
            assert current in (previous, previous + 1)
            previous = current

    def test_leap_day_birthday(self):
        """Test a Feb 29 birthday ticks over on Mar 1 in common years."""
        birthday = date(2020, 2, 29)
        assert age(birthday, date(2023, 2, 28)) == 2
        assert age(birthday, date(2023, 3, 1)) == 3
        assert age(birthday, date(2024, 2, 29)) == 4

    def test_before_birth_is_zero(self):
        """Test dates before the birthday yield 0."""
        assert age(date(2024, 5, 1), date(2024, 1, 1)) == 0

    def test_accepts_datetime(self):
        """Test datetimes are reduced to their date."""
        when = datetime(2024, 1, 10, 23, 59, tzinfo=timezone.utc)
        assert age(date(2016, 1, 10), when) == 8


class TestNextOccurrence:
    """Tests for next-weekday calculation."""

    def test_later_this_week(self):
        """Test Monday after a Sunday."""
        assert next_occurrence(0, date(2024, 1, 7)) == date(2024, 1, 8)

    def test_same_weekday_is_a_week_later(self):
        """Test today is never returned."""
        assert next_occurrence(6, date(2024, 1, 7)) == date(2024, 1, 14)

    def test_rejects_invalid_weekday(self):
        """Test weekday numbers outside 0..6."""
        with pytest.raises(ValueError):
            next_occurrence(7, date(2024, 1, 7))


class TestCompletedWeeks:
    """Tests for missed-week enumeration."""

    def test_three_weeks_later_gives_two_weeks(self):
        """Test 21 days after the last distribution yields two full weeks."""
        weeks = enumerate_completed_weeks(date(2024, 1, 1), date(2024, 1, 22))
        assert weeks == [
            (date(2024, 1, 8), date(2024, 1, 14)),
            (date(2024, 1, 15), date(2024, 1, 21)),
        ]

    def test_less_than_fourteen_days_gives_nothing(self):
        """Test the current week is never counted as missed."""
        assert enumerate_completed_weeks(date(2024, 1, 1), date(2024, 1, 14)) == []

    def test_fourteen_days_gives_one_week(self):
        """Test the first window closes exactly fourteen days later."""
        weeks = enumerate_completed_weeks(date(2024, 1, 1), date(2024, 1, 15))
        assert weeks == [(date(2024, 1, 8), date(2024, 1, 14))]

    def test_time_of_day_is_ignored(self):
        """Test calendar-day granularity."""
        since = datetime(2024, 1, 1, 23, 0, tzinfo=timezone.utc)
        as_of = datetime(2024, 1, 15, 0, 30, tzinfo=timezone.utc)
        assert len(enumerate_completed_weeks(since, as_of)) == 1


class TestLabels:
    """Tests for date formatting helpers."""

    def test_week_range_label(self):
        assert week_range_label(date(2024, 1, 8)) == "Jan 8 - Jan 14, 2024"

    def test_label_across_months(self):
        assert week_range_label(date(2024, 1, 29)) == "Jan 29 - Feb 4, 2024"

    def test_to_date(self):
        assert to_date(datetime(2024, 1, 7, 9, 0)) == date(2024, 1, 7)
        assert to_date(date(2024, 1, 7)) == date(2024, 1, 7)
