"""Storage protocol the lifecycle scheduler writes through."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Protocol

from tasklog.models.recurrence import RecurrenceRule
from tasklog.models.task import (
    CompletedInstance,
    MaterializedInstance,
    PersistedInstance,
    TemplateKey,
    TemplateTask,
)


@dataclass
class StoreSnapshot:
    """One read of the backing store."""

    templates: List[TemplateTask] = field(default_factory=list)
    instances: List[PersistedInstance] = field(default_factory=list)

    def template_for(self, key: TemplateKey) -> Optional[TemplateTask]:
        return next((t for t in self.templates if t.key == key), None)


class TaskStore(Protocol):
    """Backing store for templates and their persisted instances.

    Implementations decide how things are serialized; the scheduler only
    decides what to write and when.
    """

    def load(self, today: date) -> StoreSnapshot:
        ...

    def get_template(self, ref: str) -> Optional[TemplateTask]:
        ...

    def get_instance(self, ref: str) -> Optional[PersistedInstance]:
        ...

    def find_instance(self, key: TemplateKey, occurrence: date) -> Optional[PersistedInstance]:
        """The instance standing for `occurrence`, wherever its due date was moved."""
        ...

    def add_template(
        self, key: TemplateKey, rule: RecurrenceRule, *, eta: Optional[str] = None
    ) -> TemplateTask:
        ...

    def update_template(self, ref: str, rule: RecurrenceRule) -> Optional[TemplateTask]:
        ...

    def insert_instance(
        self, template: TemplateTask, due_date: date, *, done: bool = False
    ) -> PersistedInstance:
        ...

    def mark_done(self, instance: MaterializedInstance) -> CompletedInstance:
        ...

    def reopen(self, instance: CompletedInstance) -> MaterializedInstance:
        ...

    def update_instance(
        self, ref: str, *, due_date: Optional[date] = None, eta: Optional[str] = None
    ) -> Optional[PersistedInstance]:
        """Edit one instance. Moving its due date keeps the occurrence it stands for."""
        ...
