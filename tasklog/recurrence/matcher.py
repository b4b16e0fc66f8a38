"""Constraint matching: is a date a valid occurrence of a rule?

`matches` is the single definition of a valid occurrence and `find_next_match`
the single bounded search built on it. The calculator and the resolver both go
through these two functions.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Union

from tasklog.models.constants import SEARCH_ITERATION_LIMIT
from tasklog.models.recurrence import MonthDays, RecurrenceRule, WeekDays, Weekday, YearDates
from tasklog.recurrence.dates import ONE_DAY
from tasklog.recurrence.errors import IterationLimitExceeded

logger = logging.getLogger(__name__)


def active_constraint(rule: RecurrenceRule) -> Optional[Union[WeekDays, MonthDays, YearDates]]:
    """The rule's constraint if it filters anything, else None.

    Empty sets and constraints attached to the wrong unit do not filter.
    """
    c = rule.constraint
    if c is None or len(c) == 0 or c.unit != rule.unit:
        return None
    return c


def matches(day: date, rule: RecurrenceRule) -> bool:
    c = active_constraint(rule)
    if c is None:
        return True
    if isinstance(c, WeekDays):
        return Weekday.of(day) in c.days
    if isinstance(c, MonthDays):
        return day.day in c.days
    if isinstance(c, YearDates):
        return (day.month, day.day) in c.dates
    raise TypeError(f"Unknown constraint: {type(c).__name__}")


def find_next_match(
    rule: RecurrenceRule,
    start: date,
    *,
    limit: int = SEARCH_ITERATION_LIMIT,
) -> date:
    """Return the first date at or after `start` that matches `rule`.

    Raises:
        IterationLimitExceeded: no match within `limit` days.
    """
    cursor = start
    for _ in range(limit):
        if matches(cursor, rule):
            return cursor
        cursor = cursor + ONE_DAY
    logger.warning(f"Gave up searching for a {rule.pattern} occurrence after {limit} days from {start}")
    raise IterationLimitExceeded(start, limit)
