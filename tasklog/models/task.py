"""Task state models for tasklog.

A recurring task moves through explicit states; each state carries only the
fields that are valid for it (a virtual instance, for example, has no storage
location).
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tasklog.models.recurrence import RecurrenceRule


class TemplateKey(BaseModel):
    """Stable identity shared by a template and its instances.

    There is no numeric task id in the line format, so identity is the task
    name plus its project and section.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Task name with metadata stripped")
    project: Optional[str] = Field(None, description="First level below the identifier tag")
    section: Optional[str] = Field(None, description="Second level below the identifier tag")


class TemplateTask(BaseModel):
    """User-authored recurrence definition; never itself due."""

    model_config = ConfigDict(frozen=True)

    state: Literal["template"] = "template"
    key: TemplateKey
    rule: RecurrenceRule
    eta: Optional[str] = Field(None, description="Estimated effort, H:MM")
    ref: str = Field(..., description="Storage location of the template")


class VirtualInstance(BaseModel):
    """Computed occurrence shown for the current load only; not persisted."""

    model_config = ConfigDict(frozen=True)

    state: Literal["virtual"] = "virtual"
    key: TemplateKey
    due_date: date
    eta: Optional[str] = None


class _PersistedInstance(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: TemplateKey
    due_date: date
    eta: Optional[str] = None
    ref: str = Field(..., description="Storage location of the instance")
    occurrence_date: Optional[date] = Field(
        None, description="Date the rule produced, when the due date was moved away from it"
    )

    @property
    def occurrence(self) -> date:
        """The occurrence this instance stands for, regardless of edits to its due date."""
        return self.occurrence_date or self.due_date


class MaterializedInstance(_PersistedInstance):
    """Occurrence persisted as an open, independently editable task."""

    state: Literal["materialized"] = "materialized"


class CompletedInstance(_PersistedInstance):
    """Persisted occurrence marked done; can be reopened."""

    state: Literal["completed"] = "completed"


PersistedInstance = Union[MaterializedInstance, CompletedInstance]
OpenInstance = Union[VirtualInstance, MaterializedInstance]
TaskInstance = Union[TemplateTask, VirtualInstance, MaterializedInstance, CompletedInstance]
