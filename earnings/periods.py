"""
Calendar period boundaries shared by summaries, breakdowns and awards.

All bounds are timezone-aware datetimes in the current timezone. A period is the
closed interval ``[start, end]`` where ``end`` is the last microsecond of the
period, so ``created_at__range=(start, end)`` selects it exactly.
"""
import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from django.core.exceptions import ValidationError
from django.utils import timezone

PERIODS = ('week', 'month', 'year', 'all')

Bounds = Tuple[Optional[datetime], Optional[datetime]]


def _start_of_day(day) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min))


def _end_of_day(day) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.max))


def week_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Monday 00:00 to Sunday 23:59:59.999999 of the week containing ``moment``."""
    day = timezone.localtime(moment).date()
    monday = day - timedelta(days=day.weekday())
    return _start_of_day(monday), _end_of_day(monday + timedelta(days=6))


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    return (
        _start_of_day(date(year, month, 1)),
        _end_of_day(date(year, month, last_day)),
    )


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    return (
        _start_of_day(date(year, 1, 1)),
        _end_of_day(date(year, 12, 31)),
    )


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def period_bounds(period: str, now: Optional[datetime] = None) -> Bounds:
    """Bounds of the calendar ``period`` containing ``now``; ``all`` is unbounded."""
    if period not in PERIODS:
        raise ValidationError(f"Unknown period '{period}'")
    if period == 'all':
        return None, None

    local = timezone.localtime(now or timezone.now())
    if period == 'week':
        return week_bounds(local)
    if period == 'month':
        return month_bounds(local.year, local.month)
    return year_bounds(local.year)


def previous_period_bounds(period: str, now: Optional[datetime] = None) -> Bounds:
    """The calendar period immediately preceding the one containing ``now``."""
    if period not in PERIODS:
        raise ValidationError(f"Unknown period '{period}'")
    if period == 'all':
        return None, None

    local = timezone.localtime(now or timezone.now())
    if period == 'week':
        start, _ = week_bounds(local)
        return week_bounds(start - timedelta(days=7))
    if period == 'month':
        return month_bounds(*previous_month(local.year, local.month))
    return year_bounds(local.year - 1)


def preceding_range(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """The range of equal length ending just before ``start``."""
    if end < start:
        raise ValidationError("Period end must not precede its start.")
    length = end - start
    previous_end = start - timedelta(microseconds=1)
    return previous_end - length, previous_end


def resolve_bounds(
    period: str = 'month',
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Tuple[Bounds, Bounds]:
    """
    Current and previous bounds for a summary query.

    Explicit ``start``/``end`` override the keyword period; the comparison range
    is then the preceding range of the same length. ``all`` has no comparison.
    """
    if start is not None or end is not None:
        if start is None or end is None:
            raise ValidationError("Both start and end are required for a custom period.")
        return (start, end), preceding_range(start, end)
    current = period_bounds(period, now)
    return current, previous_period_bounds(period, now)


def percentage_change(current, previous) -> float:
    if not previous:
        return 0.0
    return float((current - previous) / previous * 100)
