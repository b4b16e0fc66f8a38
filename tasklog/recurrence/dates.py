"""Calendar date helpers.

Dates are plain `datetime.date` values; every helper returns a new date.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from tasklog.models.recurrence import RecurrenceUnit

ONE_DAY = timedelta(days=1)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def is_real_date(year: int, month: int, day: int) -> bool:
    return 1 <= month <= 12 and 1 <= day <= days_in_month(year, month)


def add_interval(
    day: date,
    interval: int,
    unit: RecurrenceUnit,
    *,
    day_of_month: Optional[int] = None,
) -> date:
    """Advance `day` by `interval` units.

    Month and year steps clamp to the end of a shorter month. When
    `day_of_month` is given, the result is pushed back up towards that day if
    the month allows it, so a Jan 31 series goes Feb 28, Mar 31 rather than
    drifting to the 28th.
    """
    if unit == RecurrenceUnit.DAY:
        return day + timedelta(days=interval)
    if unit == RecurrenceUnit.WEEK:
        return day + timedelta(weeks=interval)
    if unit == RecurrenceUnit.MONTH:
        shifted = day + relativedelta(months=interval)
    elif unit == RecurrenceUnit.YEAR:
        shifted = day + relativedelta(years=interval)
    else:
        raise ValueError(f"Unknown recurrence unit: {unit!r}")

    if day_of_month is not None and day_of_month > shifted.day:
        shifted = shifted + relativedelta(day=day_of_month)
    return shifted


def period_start(day: date, unit: RecurrenceUnit) -> date:
    """First day of the day/week/month/year containing `day` (weeks start Monday)."""
    if unit == RecurrenceUnit.DAY:
        return day
    if unit == RecurrenceUnit.WEEK:
        return day - timedelta(days=day.weekday())
    if unit == RecurrenceUnit.MONTH:
        return day.replace(day=1)
    if unit == RecurrenceUnit.YEAR:
        return day.replace(month=1, day=1)
    raise ValueError(f"Unknown recurrence unit: {unit!r}")
