"""Errors raised inside the recurrence engine.

None of these escape the engine's public functions: parse errors are caught by
the line codec, exhausted searches by the calculator and resolver. Stores
raise DuplicateInstance and the lifecycle scheduler skips it.
"""

from __future__ import annotations

from datetime import date
from typing import Optional


class RecurrenceParseError(ValueError):
    """A recurrence field is present but cannot be parsed."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class IterationLimitExceeded(RuntimeError):
    """A bounded day-by-day search ran out of steps without a match."""

    def __init__(self, start: date, limit: int):
        super().__init__(f"No matching date within {limit} days of {start.isoformat()}")
        self.start = start
        self.limit = limit


class DuplicateInstance(Exception):
    """An instance for this template and date already exists in the store."""
