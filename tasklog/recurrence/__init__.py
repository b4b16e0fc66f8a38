"""Recurrence engine for tasklog."""

from tasklog.recurrence.calculator import anchor_date, compute_occurrences
from tasklog.recurrence.errors import DuplicateInstance, IterationLimitExceeded, RecurrenceParseError
from tasklog.recurrence.matcher import find_next_match, matches
from tasklog.recurrence.resolver import next_after

__all__ = [
    "anchor_date",
    "compute_occurrences",
    "DuplicateInstance",
    "IterationLimitExceeded",
    "RecurrenceParseError",
    "find_next_match",
    "matches",
    "next_after",
]
