import os

# Keep the startup bootstrap off the on-disk default database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from slotforge.api.deps import get_db, get_now  # noqa: E402
from slotforge.db.base import Base  # noqa: E402
from slotforge.main import app  # noqa: E402
from slotforge.models.tutor import Tutor  # noqa: E402
from slotforge.models.tutor_assignment import AssignmentStatus, RecurrencePattern  # noqa: E402
from slotforge.schemas.assignment import AssignmentCreate  # noqa: E402
from slotforge.schemas.time_slot import TimeSlotCreate  # noqa: E402
from slotforge.schemas.tutor import TutorCreate  # noqa: E402
from slotforge.services.class_schedule import (  # noqa: E402
    create_assignment,
    create_time_slot,
    register_tutor,
    update_assignment_status,
)

# Monday 2026-10-19, 08:00 UTC.
FIXED_NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: FIXED_NOW

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_tutor(db_session):
    def _make(tutor_id: str, name: str | None = None) -> Tutor:
        existing = db_session.get(Tutor, tutor_id)
        if existing is not None:
            return existing
        return register_tutor(db_session, TutorCreate(id=tutor_id, name=name or tutor_id.title()))

    return _make


@pytest.fixture()
def make_slot(db_session):
    def _make(
        class_id: str = "class-1",
        day_of_week: int = 2,
        start_time: str = "16:00",
        end_time: str = "17:00",
        subject: str = "Mathematics",
        starts_on: date | None = None,
    ):
        payload = TimeSlotCreate(
            subject=subject,
            dayOfWeek=day_of_week,
            startTime=start_time,
            endTime=end_time,
            startsOn=starts_on,
        )
        return create_time_slot(db_session, class_id, payload, today=TODAY)

    return _make


@pytest.fixture()
def make_assignment(db_session, make_tutor):
    """Create an assignment with strictly increasing creation times."""
    counter = {"value": 0}

    def _make(
        slot,
        tutor_id: str,
        pattern: RecurrencePattern = RecurrencePattern.round_robin,
        config: dict | None = None,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        accept: bool = True,
    ):
        make_tutor(tutor_id)
        payload = AssignmentCreate(
            tutorId=tutor_id,
            recurrencePattern=pattern,
            recurrenceConfig=config or {},
            startDate=start_date,
            endDate=end_date,
        )
        assignment = create_assignment(db_session, slot, payload, today=TODAY)
        counter["value"] += 1
        assignment.created_at = FIXED_NOW + timedelta(seconds=counter["value"])
        if accept:
            update_assignment_status(db_session, assignment, AssignmentStatus.accepted, now=FIXED_NOW)
        db_session.flush()
        return assignment

    return _make
