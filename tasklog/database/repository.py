"""Repository layer for database operations.

`TaskRepository` implements the TaskStore protocol on top of SQLAlchemy, so the
lifecycle scheduler can run against the database exactly as it does against a
markdown task file.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tasklog.database.models import TASK_STATUS_DONE, TASK_STATUS_TODO, TaskDB
from tasklog.database.template_repository import TaskTemplateRepository
from tasklog.models.recurrence import RecurrenceRule
from tasklog.models.task import (
    CompletedInstance,
    MaterializedInstance,
    PersistedInstance,
    TemplateKey,
    TemplateTask,
)
from tasklog.recurrence.errors import DuplicateInstance
from tasklog.storage.base import StoreSnapshot

logger = logging.getLogger(__name__)


def _eq_or_null(column, value):
    return column.is_(None) if value is None else column == value


class TaskRepository:
    """Repository for task occurrences and their templates."""

    def __init__(self, db: Session):
        self.db = db
        self.templates = TaskTemplateRepository(db)

    def _active(self):
        return self.db.query(TaskDB).filter(TaskDB.deleted_at.is_(None))

    def _get_row(self, task_id: str) -> Optional[TaskDB]:
        return self._active().filter(TaskDB.id == task_id).first()

    # TaskStore

    def load(self, today: date) -> StoreSnapshot:
        rows = self._active().order_by(TaskDB.due_date.asc()).all()
        return StoreSnapshot(
            templates=[row.to_pydantic() for row in self.templates.list_active()],
            instances=[row.to_pydantic() for row in rows],
        )

    def get_template(self, ref: str) -> Optional[TemplateTask]:
        row = self.templates.get(ref)
        return row.to_pydantic() if row else None

    def get_instance(self, ref: str) -> Optional[PersistedInstance]:
        row = self._get_row(ref)
        return row.to_pydantic() if row else None

    def find_instance(self, key: TemplateKey, occurrence: date) -> Optional[PersistedInstance]:
        row = (
            self._active()
            .filter(
                TaskDB.name == key.name,
                _eq_or_null(TaskDB.project, key.project),
                _eq_or_null(TaskDB.section, key.section),
                TaskDB.occurrence_date == occurrence,
            )
            .first()
        )
        return row.to_pydantic() if row else None

    def add_template(
        self, key: TemplateKey, rule: RecurrenceRule, *, eta: Optional[str] = None
    ) -> TemplateTask:
        return self.templates.create(key=key, rule=rule, eta=eta).to_pydantic()

    def update_template(self, ref: str, rule: RecurrenceRule) -> Optional[TemplateTask]:
        row = self.templates.update_rule(ref, rule)
        return row.to_pydantic() if row else None

    def insert_instance(
        self, template: TemplateTask, due_date: date, *, done: bool = False
    ) -> PersistedInstance:
        """Insert an occurrence row.

        Raises:
            DuplicateInstance: the (template, due_date) unique constraint fired.
        """
        row = TaskDB(
            name=template.key.name,
            project=template.key.project,
            section=template.key.section,
            due_date=due_date,
            occurrence_date=due_date,
            eta=template.eta,
            status=TASK_STATUS_DONE if done else TASK_STATUS_TODO,
            template_id=template.ref,
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Created task {row.id}: {template.key.name[:50]} due {due_date}")
            return row.to_pydantic()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateInstance(f"{template.key.name!r} due {due_date}") from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {template.key.name[:50]}: {type(e).__name__}: {str(e)}")
            raise

    def _save(self, row: TaskDB, action: str) -> PersistedInstance:
        row.updated_at = datetime.utcnow()
        try:
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"{action} task {row.id}: {row.name[:50]}")
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task {row.id}: {type(e).__name__}: {str(e)}")
            raise

    def mark_done(self, instance: MaterializedInstance) -> CompletedInstance:
        row = self._get_row(instance.ref)
        if row is None or row.status != TASK_STATUS_TODO:
            raise ValueError(f"Open task {instance.ref} not found")
        row.status = TASK_STATUS_DONE
        return self._save(row, "Completed")

    def reopen(self, instance: CompletedInstance) -> MaterializedInstance:
        row = self._get_row(instance.ref)
        if row is None or row.status != TASK_STATUS_DONE:
            raise ValueError(f"Completed task {instance.ref} not found")
        row.status = TASK_STATUS_TODO
        return self._save(row, "Reopened")

    def update_instance(
        self, ref: str, *, due_date: Optional[date] = None, eta: Optional[str] = None
    ) -> Optional[PersistedInstance]:
        row = self._get_row(ref)
        if row is None:
            return None
        if due_date is not None:
            row.due_date = due_date
        if eta is not None:
            row.eta = eta
        return self._save(row, "Updated")
