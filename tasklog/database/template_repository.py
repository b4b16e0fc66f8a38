"""Repository for TaskTemplate database operations."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from tasklog.database.models import TaskTemplateDB
from tasklog.models.recurrence import RecurrenceRule
from tasklog.models.task import TemplateKey

logger = logging.getLogger(__name__)


class TaskTemplateRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        key: TemplateKey,
        rule: RecurrenceRule,
        eta: Optional[str] = None,
    ) -> TaskTemplateDB:
        row = TaskTemplateDB(
            name=key.name,
            project=key.project,
            section=key.section,
            eta=eta,
            recurrence_rule=rule.model_dump(mode="json"),
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return row
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task template: {type(e).__name__}: {str(e)}")
            raise

    def get(self, template_id: str) -> Optional[TaskTemplateDB]:
        return (
            self.db.query(TaskTemplateDB)
            .filter(
                TaskTemplateDB.id == template_id,
                TaskTemplateDB.deleted_at.is_(None),
            )
            .first()
        )

    def list_active(self) -> List[TaskTemplateDB]:
        return (
            self.db.query(TaskTemplateDB)
            .filter(TaskTemplateDB.deleted_at.is_(None))
            .order_by(TaskTemplateDB.created_at.asc())
            .all()
        )

    def update_rule(self, template_id: str, rule: RecurrenceRule) -> Optional[TaskTemplateDB]:
        row = self.get(template_id)
        if row is None:
            return None
        row.recurrence_rule = rule.model_dump(mode="json")
        row.updated_at = datetime.utcnow()
        try:
            self.db.commit()
            self.db.refresh(row)
            return row
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task template {template_id}: {type(e).__name__}: {str(e)}")
            raise
