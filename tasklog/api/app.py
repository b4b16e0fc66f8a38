"""FastAPI web application for tasklog.

Exposes the three triggers of the recurrence lifecycle: reading the task list
(load), the periodic materialization pass, and user edits/completions.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tasklog.database.database import get_db, init_db
from tasklog.database.repository import TaskRepository
from tasklog.models.constants import DEFAULT_TASK_IDENTIFIER, DEFAULT_VIRTUAL_COUNT, MAX_VIRTUAL_COUNT
from tasklog.models.recurrence import RecurrenceConstraint, RecurrenceRule, RecurrenceUnit
from tasklog.models.task import (
    CompletedInstance,
    PersistedInstance,
    TemplateKey,
    TemplateTask,
    VirtualInstance,
)
from tasklog.recurrence.calculator import compute_occurrences
from tasklog.recurrence.lifecycle import MaterializationScheduler, SchedulerState
from tasklog.storage.base import TaskStore
from tasklog.storage.task_file import MarkdownTaskFile

load_dotenv()

logger = logging.getLogger(__name__)

# When set, tasks live in this markdown file instead of the database
TASK_FILE = os.getenv("TASK_FILE")
TASK_IDENTIFIER = os.getenv("TASK_IDENTIFIER", DEFAULT_TASK_IDENTIFIER)

# One per process: the materialization gate and the write lock
scheduler_state = SchedulerState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not TASK_FILE:
        init_db()
    yield


app = FastAPI(
    title="tasklog API",
    description="Recurring task occurrences for a markdown task list",
    version="0.1.0",
    lifespan=lifespan,
)


def get_store(db: Session = Depends(get_db)) -> TaskStore:
    if TASK_FILE:
        return MarkdownTaskFile(TASK_FILE, identifier=TASK_IDENTIFIER)
    return TaskRepository(db)


def get_scheduler(store: TaskStore = Depends(get_store)) -> MaterializationScheduler:
    return MaterializationScheduler(store, state=scheduler_state)


# Request models
class RuleRequest(BaseModel):
    """Recurrence fields; `start` defaults to today."""
    interval: int = Field(1, ge=1)
    unit: RecurrenceUnit
    constraint: Optional[RecurrenceConstraint] = None
    start: Optional[date] = None
    end: Optional[date] = None

    def to_rule(self, today: date) -> RecurrenceRule:
        return RecurrenceRule(
            interval=self.interval,
            unit=self.unit,
            constraint=self.constraint,
            start=self.start or today,
            end=self.end,
        )


class TemplateRequest(RuleRequest):
    name: str = Field(..., min_length=1)
    project: Optional[str] = None
    section: Optional[str] = None
    eta: Optional[str] = Field(None, pattern=r"^\d{1,2}:\d{2}$")


class TaskUpdateRequest(BaseModel):
    """Fields of a persisted instance that can be edited; omitted fields are kept."""
    due_date: Optional[date] = None
    eta: Optional[str] = Field(None, pattern=r"^\d{1,2}:\d{2}$")


# Response models
class TaskListResponse(BaseModel):
    """Response for a task list load."""
    templates: List[TemplateTask] = Field(default_factory=list, description="Templates still shown to the user")
    instances: List[PersistedInstance] = Field(default_factory=list)
    virtuals: List[VirtualInstance] = Field(default_factory=list)
    materialized: List[PersistedInstance] = Field(default_factory=list, description="Written during this load")


class TemplateResponse(BaseModel):
    template: TemplateTask
    materialized: List[PersistedInstance] = Field(default_factory=list)


class OccurrencesResponse(BaseModel):
    template_ref: str
    dates: List[date]


class TaskResponse(BaseModel):
    task: PersistedInstance


class CompletionResponse(BaseModel):
    completed: CompletedInstance
    next_due_date: Optional[date] = None
    next_instance: Optional[PersistedInstance] = None


class MaterializeResponse(BaseModel):
    created_count: int
    created: List[PersistedInstance]


def _template_or_404(store: TaskStore, ref: str) -> TemplateTask:
    template = store.get_template(ref)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {ref} not found")
    return template


def _completion_response(scheduler: MaterializationScheduler, instance) -> CompletionResponse:
    try:
        result = scheduler.complete(instance)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CompletionResponse(
        completed=result.completed,
        next_due_date=result.next_due_date,
        next_instance=result.next_instance,
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    virtual_count: int = Query(DEFAULT_VIRTUAL_COUNT, ge=1, le=MAX_VIRTUAL_COUNT),
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Load the task list, with virtual occurrences for each template."""
    result = scheduler.load(virtual_count=virtual_count)
    return TaskListResponse(
        templates=result.visible_templates,
        instances=result.instances,
        virtuals=result.virtuals,
        materialized=result.materialized,
    )


@app.post("/templates", response_model=TemplateResponse, status_code=201)
def create_template(
    request: TemplateRequest,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Create a recurring template and materialize its near-term occurrences."""
    key = TemplateKey(name=request.name, project=request.project, section=request.section)
    template = scheduler.store.add_template(key, request.to_rule(scheduler.today()), eta=request.eta)
    logger.info(f"Created template {template.ref}: {key.name[:50]} ({template.rule.pattern})")
    return TemplateResponse(template=template, materialized=scheduler.on_template_saved())


@app.put("/templates/{ref}", response_model=TemplateResponse)
def update_template(
    ref: str,
    request: RuleRequest,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Replace a template's recurrence rule and re-materialize."""
    template = scheduler.store.update_template(ref, request.to_rule(scheduler.today()))
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {ref} not found")
    return TemplateResponse(template=template, materialized=scheduler.on_template_saved())


@app.get("/templates/{ref}/occurrences", response_model=OccurrencesResponse)
def preview_occurrences(
    ref: str,
    count: int = Query(5, ge=1, le=MAX_VIRTUAL_COUNT),
    as_of: Optional[date] = None,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Upcoming occurrence dates of a template."""
    template = _template_or_404(scheduler.store, ref)
    dates = compute_occurrences(template.rule, as_of or scheduler.today(), count)
    return OccurrencesResponse(template_ref=ref, dates=dates)


@app.post("/tasks/{ref}/complete", response_model=CompletionResponse)
def complete_task(
    ref: str,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Complete a persisted occurrence and schedule the next one."""
    instance = scheduler.store.get_instance(ref)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"Task {ref} not found")
    return _completion_response(scheduler, instance)


@app.patch("/tasks/{ref}", response_model=TaskResponse)
def update_task(
    ref: str,
    request: TaskUpdateRequest,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Move a persisted occurrence or change its eta; the template is not touched."""
    instance = scheduler.update_instance(ref, due_date=request.due_date, eta=request.eta)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"Task {ref} not found")
    logger.info(f"Updated task {ref}: {instance.key.name[:50]} due {instance.due_date}")
    return TaskResponse(task=instance)


@app.post("/tasks/{ref}/reopen", response_model=TaskResponse)
def reopen_task(
    ref: str,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Mark a completed occurrence open again."""
    instance = scheduler.store.get_instance(ref)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"Task {ref} not found")
    try:
        return TaskResponse(task=scheduler.reopen(instance))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/templates/{ref}/occurrences/{due_date}/complete", response_model=CompletionResponse)
def complete_virtual(
    ref: str,
    due_date: date,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Complete an occurrence that is only virtual so far."""
    template = _template_or_404(scheduler.store, ref)
    if compute_occurrences(template.rule, due_date, 1) != [due_date]:
        raise HTTPException(status_code=400, detail=f"{due_date} is not an occurrence of {template.key.name}")
    virtual = VirtualInstance(key=template.key, due_date=due_date, eta=template.eta)
    return _completion_response(scheduler, virtual)


@app.post("/materialize", response_model=MaterializeResponse)
def materialize(
    force: bool = False,
    scheduler: MaterializationScheduler = Depends(get_scheduler),
):
    """Periodic heartbeat: persist occurrences due today or tomorrow."""
    created = scheduler.materialize(force=force)
    return MaterializeResponse(created_count=len(created), created=created)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
