"""Resolve the occurrence that follows a given occurrence.

Used when an occurrence is completed: the next one is computed from the date
just completed, not from today. Rules with several constraint values in one
period (weekly on Mon+Wed+Fri, monthly on the 1st and 15th) first move to the
next value inside the same period; only after the last value of a period does
the interval apply, so a constrained rule only occurs in every interval-th
week, month or year.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from tasklog.models.constants import SEARCH_ITERATION_LIMIT
from tasklog.models.recurrence import MonthDays, RecurrenceRule, WeekDays, YearDates
from tasklog.recurrence.dates import add_interval, days_in_month, is_real_date, period_start
from tasklog.recurrence.errors import IterationLimitExceeded
from tasklog.recurrence.matcher import active_constraint, find_next_match, matches

logger = logging.getLogger(__name__)


def _next_in_period(constraint, previous: date) -> Optional[date]:
    """Next constraint value after `previous` within the same week/month/year."""
    if isinstance(constraint, WeekDays):
        # Rest of the Monday-started week
        later = sorted(d.number for d in constraint.days if d.number > previous.weekday())
        if later:
            return previous + timedelta(days=later[0] - previous.weekday())
        return None

    if isinstance(constraint, MonthDays):
        last = days_in_month(previous.year, previous.month)
        later = sorted(d for d in constraint.days if previous.day < d <= last)
        if later:
            return previous.replace(day=later[0])
        return None

    if isinstance(constraint, YearDates):
        current = (previous.month, previous.day)
        later = sorted(
            (m, d)
            for (m, d) in constraint.dates
            if (m, d) > current and is_real_date(previous.year, m, d)
        )
        if later:
            month, day = later[0]
            return date(previous.year, month, day)
        return None

    return None


def _first_in_later_period(
    rule: RecurrenceRule,
    constraint,
    previous: date,
    *,
    limit: int,
) -> date:
    """First constraint value in the period `interval` periods after `previous`'s.

    A period without any real value (no 31st in September) is skipped by
    another `interval` periods, so the series stays on its own periods.

    Raises:
        IterationLimitExceeded: the candidate period starts `limit` days or more
            after `previous`.
    """
    period = period_start(previous, rule.unit)
    while True:
        period = add_interval(period, rule.interval, rule.unit)
        if (period - previous).days >= limit:
            logger.warning(
                f"Gave up searching for a {rule.pattern} occurrence after {limit} days from {previous}"
            )
            raise IterationLimitExceeded(previous, limit)
        if matches(period, rule):
            return period
        nxt = _next_in_period(constraint, period)
        if nxt is not None:
            return nxt


def step_after(
    rule: RecurrenceRule,
    previous: date,
    *,
    limit: int = SEARCH_ITERATION_LIMIT,
) -> date:
    """The occurrence following `previous`, ignoring the rule's end bound.

    Constrained rules move to the next value in the same week/month/year, or
    else to the first value `interval` periods on. Unconstrained rules add the
    interval, keeping the start's day of month for month and year steps.

    Raises:
        IterationLimitExceeded: no occurrence within `limit` days.
    """
    constraint = active_constraint(rule)

    if constraint is not None:
        nxt = _next_in_period(constraint, previous)
        if nxt is not None:
            return nxt
        return _first_in_later_period(rule, constraint, previous, limit=limit)

    candidate = add_interval(previous, rule.interval, rule.unit, day_of_month=rule.start.day)
    return find_next_match(rule, candidate, limit=limit)


def next_after(
    rule: RecurrenceRule,
    previous: date,
    *,
    limit: int = SEARCH_ITERATION_LIMIT,
) -> Optional[date]:
    """Return the occurrence after `previous`, or None.

    None means the rule is invalid, the next date would fall after the rule's
    end, or no match was found within `limit` days.
    """
    if not rule.is_valid:
        logger.warning(f"Ignoring {rule.pattern} rule with a constraint for another unit")
        return None

    try:
        candidate = step_after(rule, previous, limit=limit)
    except IterationLimitExceeded:
        return None

    if rule.end is not None and candidate > rule.end:
        logger.debug(f"Next {rule.pattern} occurrence {candidate} is past end {rule.end}")
        return None
    return candidate
