"""Data models for tasklog."""

from tasklog.models.recurrence import (
    MonthDays,
    RecurrenceRule,
    RecurrenceUnit,
    WeekDays,
    Weekday,
    YearDates,
)
from tasklog.models.task import (
    CompletedInstance,
    MaterializedInstance,
    TemplateKey,
    TemplateTask,
    VirtualInstance,
)

__all__ = [
    "MonthDays",
    "RecurrenceRule",
    "RecurrenceUnit",
    "WeekDays",
    "Weekday",
    "YearDates",
    "CompletedInstance",
    "MaterializedInstance",
    "TemplateKey",
    "TemplateTask",
    "VirtualInstance",
]
