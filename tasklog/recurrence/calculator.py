"""Compute the upcoming occurrence dates of a recurrence rule."""

from __future__ import annotations

import logging
from datetime import date
from typing import List

from tasklog.models.constants import SEARCH_ITERATION_LIMIT
from tasklog.models.recurrence import RecurrenceRule
from tasklog.recurrence.errors import IterationLimitExceeded
from tasklog.recurrence.matcher import find_next_match
from tasklog.recurrence.resolver import step_after

logger = logging.getLogger(__name__)


def anchor_date(rule: RecurrenceRule, *, limit: int = SEARCH_ITERATION_LIMIT) -> date:
    """First date at or after the rule's start that satisfies its constraint.

    Raises:
        IterationLimitExceeded: no match within `limit` days of the start.
    """
    return find_next_match(rule, rule.start, limit=limit)


def compute_occurrences(
    rule: RecurrenceRule,
    as_of: date,
    count: int,
    *,
    limit: int = SEARCH_ITERATION_LIMIT,
) -> List[date]:
    """Return up to `count` occurrences on or after `as_of`, in increasing order.

    Three phases:
    - anchor: first constrained match at/after `rule.start`, independent of `as_of`
    - catch-up: step occurrence by occurrence until reaching `as_of`
    - generation: emit occurrences until `count` or `rule.end`

    Every day-by-day search is capped at `limit` steps. Running out of steps
    ends the computation with whatever was found; invalid rules return [].
    """
    if count <= 0:
        return []
    if not rule.is_valid:
        logger.warning(f"Ignoring {rule.pattern} rule with a constraint for another unit")
        return []
    if rule.end is not None and rule.end < rule.start:
        logger.debug(f"Rule {rule.pattern} ends ({rule.end}) before it starts ({rule.start})")
        return []

    occurrences: List[date] = []
    try:
        cursor = anchor_date(rule, limit=limit)

        while cursor < as_of:
            if rule.end is not None and cursor > rule.end:
                return occurrences
            cursor = step_after(rule, cursor, limit=limit)

        while len(occurrences) < count:
            if rule.end is not None and cursor > rule.end:
                break
            occurrences.append(cursor)
            if len(occurrences) < count:
                cursor = step_after(rule, cursor, limit=limit)
    except IterationLimitExceeded:
        logger.warning(
            f"Returning {len(occurrences)} of {count} requested {rule.pattern} occurrences"
        )
    return occurrences
