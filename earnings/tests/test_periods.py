"""
Tests for calendar period boundaries.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils import timezone

from earnings import periods


def aware(*args):
    return timezone.make_aware(datetime(*args))


class TestCalendarBounds:
    """Tests for week, month and year bounds."""

    def test_week_starts_on_monday(self):
        """Weeks run Monday to Sunday."""
        start, end = periods.week_bounds(aware(2024, 3, 14, 15, 30))  # Thursday
        assert start == aware(2024, 3, 11)
        assert timezone.localtime(end).date().isoformat() == '2024-03-17'
        assert end - start == timedelta(days=7) - timedelta(microseconds=1)

    def test_month_bounds_leap_year(self):
        """February of a leap year ends on the 29th."""
        start, end = periods.month_bounds(2024, 2)
        assert start == aware(2024, 2, 1)
        assert timezone.localtime(end).day == 29

    def test_year_bounds(self):
        start, end = periods.year_bounds(2023)
        assert start == aware(2023, 1, 1)
        assert end + timedelta(microseconds=1) == aware(2024, 1, 1)

    def test_previous_month_wraps_year(self):
        assert periods.previous_month(2024, 1) == (2023, 12)
        assert periods.previous_month(2024, 7) == (2024, 6)


class TestPeriodBounds:
    """Tests for keyword periods."""

    def test_month_period(self):
        now = aware(2024, 5, 20, 9)
        assert periods.period_bounds('month', now) == periods.month_bounds(2024, 5)

    def test_all_is_unbounded(self):
        assert periods.period_bounds('all') == (None, None)

    def test_unknown_period(self):
        """Unknown keywords are a validation error."""
        with pytest.raises(ValidationError):
            periods.period_bounds('fortnight')

    def test_previous_week(self):
        now = aware(2024, 3, 14, 12)
        start, _ = periods.previous_period_bounds('week', now)
        assert start == aware(2024, 3, 4)

    def test_previous_year(self):
        now = aware(2024, 3, 14, 12)
        assert periods.previous_period_bounds('year', now) == periods.year_bounds(2023)


class TestResolveBounds:
    """Tests for current and comparison ranges."""

    def test_keyword_uses_previous_calendar_unit(self):
        now = aware(2024, 3, 14, 12)
        current, previous = periods.resolve_bounds('month', now=now)
        assert current == periods.month_bounds(2024, 3)
        assert previous == periods.month_bounds(2024, 2)

    def test_explicit_range_compares_equal_length(self):
        """Custom ranges compare with the range of equal length just before."""
        start, end = aware(2024, 3, 10), aware(2024, 3, 20)
        current, (prev_start, prev_end) = periods.resolve_bounds('month', start, end)
        assert current == (start, end)
        assert prev_end == start - timedelta(microseconds=1)
        assert prev_end - prev_start == end - start

    def test_half_open_range_rejected(self):
        with pytest.raises(ValidationError):
            periods.resolve_bounds('month', start=aware(2024, 3, 10))

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            periods.resolve_bounds('month', aware(2024, 3, 20), aware(2024, 3, 10))


class TestPercentageChange:
    """Tests for period-over-period change."""

    def test_growth(self):
        assert periods.percentage_change(Decimal('150'), Decimal('100')) == 50.0

    def test_no_previous(self):
        """No previous earnings reads as no change."""
        assert periods.percentage_change(Decimal('150'), Decimal('0')) == 0.0
