"""Drive recurring templates through virtual, materialized and completed states.

Triggers:
- load (the task file was read): surface virtual occurrences for this session
- materialize (at most once per cooldown, or forced after a template edit):
  persist occurrences due today or tomorrow
- complete (user action): close an occurrence and persist the next one
- edit / reopen (user action): change one persisted instance; the template
  and its other instances are untouched

These may interleave. Every new instance goes through `_insert_once`, which
re-checks the store immediately before writing, and every read-then-write
holds the shared state lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Union

from tasklog.models.constants import (
    DEFAULT_VIRTUAL_COUNT,
    MATERIALIZE_COOLDOWN,
    MATERIALIZE_HORIZON_DAYS,
    MATERIALIZE_LOOKAHEAD,
)
from tasklog.models.task import (
    CompletedInstance,
    MaterializedInstance,
    PersistedInstance,
    TemplateTask,
    VirtualInstance,
)
from tasklog.recurrence.calculator import compute_occurrences
from tasklog.recurrence.errors import DuplicateInstance
from tasklog.recurrence.resolver import next_after
from tasklog.storage.base import StoreSnapshot, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class SchedulerState:
    """Process-wide scheduler state, shared by every scheduler on the same store."""

    last_materialized_at: Optional[datetime] = None
    lock: threading.RLock = field(default_factory=threading.RLock)


@dataclass
class LoadResult:
    templates: List[TemplateTask]
    visible_templates: List[TemplateTask]
    instances: List[PersistedInstance]
    virtuals: List[VirtualInstance]
    materialized: List[PersistedInstance] = field(default_factory=list)


@dataclass
class CompletionResult:
    completed: CompletedInstance
    next_due_date: Optional[date] = None
    next_instance: Optional[PersistedInstance] = None  # None if it already existed


def build_virtuals(snapshot: StoreSnapshot, today: date, count: int) -> List[VirtualInstance]:
    """Virtual instances for computed occurrences that have no persisted instance."""
    persisted = {(i.key, i.occurrence) for i in snapshot.instances}
    virtuals: List[VirtualInstance] = []
    for template in snapshot.templates:
        for due in compute_occurrences(template.rule, today, count):
            if (template.key, due) in persisted:
                continue
            virtuals.append(VirtualInstance(key=template.key, due_date=due, eta=template.eta))
    return virtuals


def visible_templates(
    templates: Iterable[TemplateTask],
    open_instances: Iterable[Union[VirtualInstance, MaterializedInstance]],
) -> List[TemplateTask]:
    """Templates to list for the user.

    A template is hidden while it has an open instance (virtual or
    materialized); a template without one stays visible so a freshly
    created rule can still be seen and edited.
    """
    covered = {i.key for i in open_instances}
    return [t for t in templates if t.key not in covered]


class MaterializationScheduler:
    """Lifecycle decisions for recurring templates over a TaskStore."""

    def __init__(
        self,
        store: TaskStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        state: Optional[SchedulerState] = None,
        cooldown: timedelta = MATERIALIZE_COOLDOWN,
    ):
        self.store = store
        self._clock = clock or datetime.now
        self.state = state or SchedulerState()
        self.cooldown = cooldown

    def today(self) -> date:
        return self._clock().date()

    def load(self, *, virtual_count: int = DEFAULT_VIRTUAL_COUNT) -> LoadResult:
        with self.state.lock:
            created = self.materialize()
            today = self.today()
            snapshot = self.store.load(today)

        virtuals = build_virtuals(snapshot, today, virtual_count)
        open_instances = [i for i in snapshot.instances if isinstance(i, MaterializedInstance)]
        return LoadResult(
            templates=snapshot.templates,
            visible_templates=visible_templates(snapshot.templates, open_instances + virtuals),
            instances=snapshot.instances,
            virtuals=virtuals,
            materialized=created,
        )

    def materialize(self, *, force: bool = False) -> List[PersistedInstance]:
        """Persist occurrences due up to tomorrow that are not in the store yet.

        Runs at most once per cooldown unless forced. Returns created instances.
        """
        with self.state.lock:
            now = self._clock()
            last = self.state.last_materialized_at
            if not force and last is not None and now - last < self.cooldown:
                return []

            today = now.date()
            horizon = today + timedelta(days=MATERIALIZE_HORIZON_DAYS)
            snapshot = self.store.load(today)

            created: List[PersistedInstance] = []
            for template in snapshot.templates:
                for due in compute_occurrences(template.rule, today, MATERIALIZE_LOOKAHEAD):
                    if due > horizon:
                        continue
                    instance = self._insert_once(template, due)
                    if instance is not None:
                        created.append(instance)

            # Only a pass that ran to the end closes the gate
            self.state.last_materialized_at = now

        if created:
            logger.info(f"Materialized {len(created)} recurring task occurrence(s)")
        return created

    def on_template_saved(self) -> List[PersistedInstance]:
        """Materialize right away after a template was created or edited."""
        return self.materialize(force=True)

    def complete(self, instance: Union[VirtualInstance, MaterializedInstance]) -> CompletionResult:
        """Complete an occurrence and persist the one after it.

        A virtual occurrence is persisted as completed directly; both writes
        happen under the same lock, so from the caller's side they are one step.

        Raises:
            ValueError: the instance is already completed.
            LookupError: a virtual instance's template no longer exists.
        """
        with self.state.lock:
            if isinstance(instance, CompletedInstance):
                raise ValueError(f"{instance.key.name!r} due {instance.due_date} is already completed")

            snapshot = self.store.load(self.today())
            template = snapshot.template_for(instance.key)

            if isinstance(instance, VirtualInstance):
                completed = self._complete_virtual(instance, template)
            else:
                completed = self.store.mark_done(instance)

            result = CompletionResult(completed=completed)
            if template is None:
                logger.debug(f"No template for {instance.key.name!r}; nothing to schedule")
                return result

            # A moved instance still counts from the occurrence it stands for
            result.next_due_date = next_after(template.rule, completed.occurrence)
            if result.next_due_date is not None:
                result.next_instance = self._insert_once(template, result.next_due_date)
                logger.info(f"Next {template.key.name!r} occurrence: {result.next_due_date}")
            return result

    def _complete_virtual(
        self, instance: VirtualInstance, template: Optional[TemplateTask]
    ) -> CompletedInstance:
        existing = self.store.find_instance(instance.key, instance.due_date)
        if isinstance(existing, CompletedInstance):
            raise ValueError(f"{instance.key.name!r} due {instance.due_date} is already completed")
        if isinstance(existing, MaterializedInstance):
            return self.store.mark_done(existing)
        if template is None:
            raise LookupError(f"No template for {instance.key.name!r}")
        return self.store.insert_instance(template, instance.due_date, done=True)

    def reopen(self, instance: PersistedInstance) -> MaterializedInstance:
        """Undo a completion. The occurrence scheduled by it is left in place.

        Raises:
            ValueError: the instance is not completed.
        """
        with self.state.lock:
            if not isinstance(instance, CompletedInstance):
                raise ValueError(f"{instance.key.name!r} due {instance.due_date} is not completed")
            return self.store.reopen(instance)

    def update_instance(
        self, ref: str, *, due_date: Optional[date] = None, eta: Optional[str] = None
    ) -> Optional[PersistedInstance]:
        """Edit a persisted instance independently of its template."""
        with self.state.lock:
            return self.store.update_instance(ref, due_date=due_date, eta=eta)

    def _insert_once(self, template: TemplateTask, due: date) -> Optional[PersistedInstance]:
        """Write an open instance unless one exists for (template, due)."""
        with self.state.lock:
            if self.store.find_instance(template.key, due) is not None:
                logger.debug(f"{template.key.name!r} due {due} already exists; skipping")
                return None
            try:
                return self.store.insert_instance(template, due)
            except DuplicateInstance:
                logger.debug(f"{template.key.name!r} due {due} was written concurrently; skipping")
                return None
