"""Pytest fixtures and configuration for tasklog tests."""

import pytest
from datetime import date, datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from tasklog.database.database import Base
from tasklog.database.repository import TaskRepository
from tasklog.models.recurrence import RecurrenceRule, RecurrenceUnit, WeekDays, Weekday
from tasklog.models.task import TemplateKey
from tasklog.recurrence.lifecycle import MaterializationScheduler, SchedulerState
from tasklog.storage.task_file import MarkdownTaskFile


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Monday
FIXED_NOW = datetime(2025, 10, 20, 9, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    from tasklog.database import models  # noqa: F401

    # Create engine with StaticPool for in-memory database
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def task_repository(db_session: Session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
def today(clock):
    return clock().date()


@pytest.fixture
def task_file_path(tmp_path):
    return tmp_path / "tasks.md"


@pytest.fixture
def task_file(task_file_path, clock):
    """Create a MarkdownTaskFile on an empty temporary file."""
    return MarkdownTaskFile(task_file_path, today=lambda: clock().date())


@pytest.fixture(params=["file", "sql"])
def store(request, task_file_path, db_session, clock):
    """Every TaskStore implementation, so lifecycle tests run against both."""
    if request.param == "file":
        return MarkdownTaskFile(task_file_path, today=lambda: clock().date())
    return TaskRepository(db_session)


@pytest.fixture
def scheduler(store, clock):
    return MaterializationScheduler(store, clock=clock, state=SchedulerState())


@pytest.fixture
def plants_key():
    return TemplateKey(name="Water plants", project="home", section="garden")


@pytest.fixture
def mwf_rule():
    """Weekly on Monday, Wednesday and Friday, starting Wednesday 2025-10-01."""
    return RecurrenceRule(
        interval=1,
        unit=RecurrenceUnit.WEEK,
        constraint=WeekDays(days=frozenset({Weekday.MON, Weekday.WED, Weekday.FRI})),
        start=date(2025, 10, 1),
    )


@pytest.fixture
def test_client(db_session: Session, clock):
    """Create a FastAPI test client backed by the test database and a fixed clock."""
    from tasklog.api.app import app, get_scheduler
    from tasklog.database.database import get_db

    # Override the get_db dependency to use our test database session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    state = SchedulerState()

    def override_get_scheduler():
        return MaterializationScheduler(TaskRepository(db_session), clock=clock, state=state)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scheduler] = override_get_scheduler

    # No context manager: the lifespan would create the on-disk schema
    client = TestClient(app)
    yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
