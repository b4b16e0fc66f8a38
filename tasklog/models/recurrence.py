"""Recurrence models for tasklog.

Canonical internal representation of a recurring task's pattern. The markdown
line fields (`recurring::`, `wday::[]`, ...) are only a serialization of these.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Annotated, ClassVar, FrozenSet, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecurrenceUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Weekday(str, Enum):
    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @property
    def number(self) -> int:
        """Position in the week, matching `date.weekday()` (Monday=0)."""
        return _WEEKDAY_ORDER.index(self)

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return _WEEKDAY_ORDER[day.weekday()]


_WEEKDAY_ORDER = [
    Weekday.MON,
    Weekday.TUE,
    Weekday.WED,
    Weekday.THU,
    Weekday.FRI,
    Weekday.SAT,
    Weekday.SUN,
]


class WeekDays(BaseModel):
    """Weekly sub-filter: only these weekdays count."""

    model_config = ConfigDict(frozen=True)

    unit: ClassVar[RecurrenceUnit] = RecurrenceUnit.WEEK

    kind: Literal["wday"] = "wday"
    days: FrozenSet[Weekday] = frozenset()

    def __len__(self) -> int:
        return len(self.days)


class MonthDays(BaseModel):
    """Monthly sub-filter: only these days of the month count."""

    model_config = ConfigDict(frozen=True)

    unit: ClassVar[RecurrenceUnit] = RecurrenceUnit.MONTH

    kind: Literal["day"] = "day"
    days: FrozenSet[int] = frozenset()

    @field_validator("days")
    @classmethod
    def _validate_days(cls, v):
        for day in v:
            if day < 1 or day > 31:
                raise ValueError(f"day of month out of range: {day}")
        return v

    def __len__(self) -> int:
        return len(self.days)


class YearDates(BaseModel):
    """Yearly sub-filter: only these (month, day) pairs count.

    Pairs are range-checked only; an impossible pair such as (2, 30) is kept
    and simply never matches.
    """

    model_config = ConfigDict(frozen=True)

    unit: ClassVar[RecurrenceUnit] = RecurrenceUnit.YEAR

    kind: Literal["month"] = "month"
    dates: FrozenSet[Tuple[int, int]] = frozenset()

    @field_validator("dates")
    @classmethod
    def _validate_dates(cls, v):
        for month, day in v:
            if month < 1 or month > 12 or day < 1 or day > 31:
                raise ValueError(f"month-day out of range: {month:02d}-{day:02d}")
        return v

    def __len__(self) -> int:
        return len(self.dates)


RecurrenceConstraint = Annotated[
    Union[WeekDays, MonthDays, YearDates],
    Field(discriminator="kind"),
]


class RecurrenceRule(BaseModel):
    """Every `interval` `unit`s from `start`, optionally filtered by `constraint`.

    Notes:
    - `interval` below 1 is clamped to 1.
    - A constraint whose unit differs from `unit` makes the rule invalid; invalid
      rules produce no occurrences rather than raising.
    - `end` earlier than `start` is allowed and yields no occurrences.
    """

    model_config = ConfigDict(frozen=True)

    interval: int = Field(1, description="Every N units (days/weeks/months/years)")
    unit: RecurrenceUnit
    constraint: Optional[RecurrenceConstraint] = None
    start: date
    end: Optional[date] = None

    @field_validator("interval")
    @classmethod
    def _clamp_interval(cls, v):
        return v if v >= 1 else 1

    @property
    def is_valid(self) -> bool:
        return self.constraint is None or self.constraint.unit == self.unit

    @property
    def pattern(self) -> str:
        """The `recurring::` value, e.g. "2week"."""
        return f"{self.interval}{self.unit.value}"
