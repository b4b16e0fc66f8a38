"""SQLAlchemy database models for tasklog."""

from datetime import datetime
import uuid
from sqlalchemy import Column, String, Date, DateTime, JSON, ForeignKey, UniqueConstraint

from tasklog.database.database import Base


TASK_STATUS_TODO = "todo"
TASK_STATUS_DONE = "done"


class TaskTemplateDB(Base):
    """Database model for a recurring task template (identity + recurrence rule)."""

    __tablename__ = "task_templates"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Identity
    name = Column(String, nullable=False, index=True)
    project = Column(String, nullable=True)
    section = Column(String, nullable=True)

    eta = Column(String, nullable=True)
    recurrence_rule = Column(JSON, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from tasklog.models.recurrence import RecurrenceRule
        from tasklog.models.task import TemplateKey, TemplateTask

        return TemplateTask(
            key=TemplateKey(name=self.name, project=self.project, section=self.section),
            rule=RecurrenceRule.model_validate(self.recurrence_rule),
            eta=self.eta,
            ref=self.id,
        )


class TaskDB(Base):
    """Database model for a concrete (materialized or completed) task occurrence."""

    __tablename__ = "tasks"
    __table_args__ = (
        # Prevent duplicate generation of the same occurrence for a template,
        # even after its due date was moved.
        # Note: NULL template_id rows (hand-written tasks) do not participate.
        UniqueConstraint("template_id", "occurrence_date", name="uq_task_template_occurrence"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Identity (copied from the template so the row stays meaningful on its own)
    name = Column(String, nullable=False, index=True)
    project = Column(String, nullable=True)
    section = Column(String, nullable=True)

    due_date = Column(Date, nullable=False, index=True)
    # Date the rule produced; stays put when the due date is moved
    occurrence_date = Column(Date, nullable=False, index=True)
    eta = Column(String, nullable=True)
    status = Column(String, nullable=False, default=TASK_STATUS_TODO)

    template_id = Column(String, ForeignKey("task_templates.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    def to_pydantic(self):
        """Convert database model to a Materialized or Completed instance."""
        from tasklog.models.task import CompletedInstance, MaterializedInstance, TemplateKey

        cls = CompletedInstance if self.status == TASK_STATUS_DONE else MaterializedInstance
        return cls(
            key=TemplateKey(name=self.name, project=self.project, section=self.section),
            due_date=self.due_date,
            eta=self.eta,
            ref=self.id,
            occurrence_date=self.occurrence_date if self.occurrence_date != self.due_date else None,
        )
