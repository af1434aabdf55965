"""Reporting period helpers."""

import calendar
from datetime import date

from wealth_crm.core.exceptions import ValidationError
from wealth_crm.db.enums import PeriodType


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing ``day``."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def quarter_bounds(day: date) -> tuple[date, date]:
    first_month = 3 * ((day.month - 1) // 3) + 1
    start = date(day.year, first_month, 1)
    end = month_bounds(date(day.year, first_month + 2, 1))[1]
    return start, end


def year_bounds(day: date) -> tuple[date, date]:
    return date(day.year, 1, 1), date(day.year, 12, 31)


def period_bounds(day: date, period_type: str) -> tuple[date, date]:
    """Bounds of the ``period_type`` period containing ``day``."""
    if period_type == PeriodType.ANNUAL.value:
        return year_bounds(day)
    if period_type == PeriodType.QUARTERLY.value:
        return quarter_bounds(day)
    return month_bounds(day)


def resolve_range(
    start_date: date | None,
    end_date: date | None,
    default_period: str = PeriodType.MONTHLY.value,
    today: date | None = None,
) -> tuple[date, date]:
    """Fill a missing start/end from the current period."""
    default_start, default_end = period_bounds(today or date.today(), default_period)
    start = start_date or default_start
    end = end_date or default_end
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    return start, end


def percent_change(current, previous) -> float:
    """Percent change from previous to current; 0 when there is no baseline."""
    current = float(current or 0)
    previous = float(previous or 0)
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)
