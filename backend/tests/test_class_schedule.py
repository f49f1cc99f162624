from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from slotforge.core.exceptions import (
    PermissionDeniedError,
    ResourceNotFoundError,
    StateConflictError,
    ValidationError,
)
from slotforge.models.activity_log import ActivityLog
from slotforge.models.time_slot import SlotCancellation
from slotforge.models.tutor_assignment import AssignmentStatus, RecurrencePattern
from slotforge.models.tutoring_session import SessionStatus, TutoringSession
from slotforge.schemas.assignment import AssignmentCreate
from slotforge.schemas.tutor import TutorCreate
from slotforge.services.class_schedule import (
    cancel_time_slot_week,
    create_assignment,
    deactivate_time_slot,
    register_tutor,
    reinstate_time_slot_week,
    remove_assignment,
    update_assignment_status,
)
from slotforge.services.session_materializer import materialize_time_slot

from conftest import FIXED_NOW, TODAY


def test_slot_epoch_is_first_matching_day(make_slot):
    assert make_slot(day_of_week=2).epoch_date == date(2026, 10, 20)
    assert make_slot(day_of_week=1).epoch_date == TODAY
    assert make_slot(day_of_week=0).epoch_date == date(2026, 10, 25)
    assert make_slot(day_of_week=2, starts_on=date(2026, 11, 1)).epoch_date == date(2026, 11, 3)


def test_create_slot_is_audited(db_session, make_slot):
    slot = make_slot()
    db_session.flush()

    entry = db_session.execute(select(ActivityLog).where(ActivityLog.entity_id == slot.id)).scalar_one()

    assert entry.action == "time_slot.create"
    assert entry.details["day"] == "Tuesday"


def test_duplicate_tutor_id_is_rejected(db_session, make_tutor):
    make_tutor("alice")

    with pytest.raises(StateConflictError):
        register_tutor(db_session, TutorCreate(id="alice", name="Other Alice"))


def test_assignment_starts_pending_with_normalized_config(db_session, make_slot, make_assignment):
    slot = make_slot()

    assignment = make_assignment(slot, "alice", RecurrencePattern.weekly, {"weeks": [3, 1]}, accept=False)

    assert assignment.status == AssignmentStatus.pending
    assert assignment.start_date == TODAY
    assert assignment.recurrence_config == {"weeks": [1, 3]}


def test_invalid_recurrence_config_is_rejected(db_session, make_slot, make_tutor):
    slot = make_slot()
    make_tutor("alice")
    payload = AssignmentCreate(
        tutorId="alice",
        recurrencePattern=RecurrencePattern.consecutive_days,
        recurrenceConfig={"consecutiveDays": 0},
    )

    with pytest.raises(ValidationError) as exc_info:
        create_assignment(db_session, slot, payload, today=TODAY)

    assert exc_info.value.details["errors"]


def test_assignment_requires_known_tutor(db_session, make_slot):
    slot = make_slot()
    payload = AssignmentCreate(tutorId="ghost", recurrencePattern=RecurrencePattern.round_robin)

    with pytest.raises(ResourceNotFoundError):
        create_assignment(db_session, slot, payload, today=TODAY)


def test_end_date_before_default_start_is_rejected(db_session, make_slot, make_tutor):
    slot = make_slot()
    make_tutor("alice")
    payload = AssignmentCreate(
        tutorId="alice",
        recurrencePattern=RecurrencePattern.round_robin,
        endDate=TODAY - timedelta(days=1),
    )

    with pytest.raises(ValidationError):
        create_assignment(db_session, slot, payload, today=TODAY)


def test_inactive_slot_rejects_new_assignments(db_session, make_slot, make_tutor):
    slot = make_slot()
    make_tutor("alice")
    deactivate_time_slot(db_session, slot, now=FIXED_NOW)
    payload = AssignmentCreate(tutorId="alice", recurrencePattern=RecurrencePattern.round_robin)

    with pytest.raises(StateConflictError):
        create_assignment(db_session, slot, payload, today=TODAY)


def test_status_transitions_are_terminal(db_session, make_slot, make_assignment):
    slot = make_slot()
    assignment = make_assignment(slot, "alice", accept=False)

    with pytest.raises(PermissionDeniedError):
        update_assignment_status(db_session, assignment, AssignmentStatus.accepted, tutor_id="bob")

    update_assignment_status(db_session, assignment, AssignmentStatus.declined, tutor_id="alice", now=FIXED_NOW)
    assert assignment.status == AssignmentStatus.declined
    assert assignment.responded_at is not None

    with pytest.raises(StateConflictError):
        update_assignment_status(db_session, assignment, AssignmentStatus.accepted)


def test_removed_assignment_cannot_change(db_session, make_slot, make_assignment):
    slot = make_slot()
    assignment = make_assignment(slot, "alice", accept=False)
    remove_assignment(db_session, assignment, now=FIXED_NOW)

    assert assignment.is_active is False
    with pytest.raises(StateConflictError):
        update_assignment_status(db_session, assignment, AssignmentStatus.accepted)
    with pytest.raises(StateConflictError):
        remove_assignment(db_session, assignment)


def test_removed_assignment_leaves_existing_sessions(db_session, make_slot, make_assignment):
    slot = make_slot()
    assignment = make_assignment(slot, "alice")
    materialize_time_slot(db_session, slot, 2, today=TODAY, now=FIXED_NOW)

    remove_assignment(db_session, assignment, now=FIXED_NOW)
    result = materialize_time_slot(db_session, slot, 3, today=TODAY, now=FIXED_NOW)

    sessions = db_session.execute(select(TutoringSession).order_by(TutoringSession.scheduled_start)).scalars().all()
    assert [item.tutor_id for item in sessions] == ["alice", "alice", None]
    assert result.created_count == 1


def test_deactivate_cancels_only_future_sessions(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    materialize_time_slot(db_session, slot, 3, today=TODAY, now=FIXED_NOW)

    cancelled = deactivate_time_slot(
        db_session,
        slot,
        now=datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc),
    )

    statuses = db_session.execute(
        select(TutoringSession.status).order_by(TutoringSession.scheduled_start)
    ).scalars().all()
    assert cancelled == 2
    assert statuses == [SessionStatus.confirmed, SessionStatus.cancelled, SessionStatus.cancelled]
    assert slot.is_active is False

    with pytest.raises(StateConflictError):
        deactivate_time_slot(db_session, slot, now=FIXED_NOW)


def test_cancel_and_reinstate_week(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    created = materialize_time_slot(db_session, slot, 2, today=TODAY, now=FIXED_NOW).created

    cancellation, cancelled = cancel_time_slot_week(db_session, slot, date(2026, 10, 27), reason="Exams")
    session = db_session.get(TutoringSession, created[1].id)

    assert cancellation.week_start == date(2026, 10, 26)
    assert cancelled == 1
    assert session.status == SessionStatus.cancelled
    assert session.cancellation_reason == "Week cancelled: Exams"

    with pytest.raises(StateConflictError):
        cancel_time_slot_week(db_session, slot, date(2026, 10, 30))

    result = reinstate_time_slot_week(db_session, slot, date(2026, 10, 26), today=TODAY, now=FIXED_NOW)

    assert result.created == []
    assert session.status == SessionStatus.confirmed
    assert session.tutor_id == "alice"
    assert session.cancellation_reason is None


def test_reinstating_unmaterialized_week_creates_session(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    cancel_time_slot_week(db_session, slot, date(2026, 10, 26))
    materialize_time_slot(db_session, slot, 2, today=TODAY, now=FIXED_NOW)

    result = reinstate_time_slot_week(db_session, slot, date(2026, 10, 26), today=TODAY, now=FIXED_NOW)

    assert result.created_count == 1
    assert result.created[0].tutor_id == "alice"


def test_reinstate_on_inactive_slot_keeps_sessions_cancelled(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    materialize_time_slot(db_session, slot, 2, today=TODAY, now=FIXED_NOW)
    cancel_time_slot_week(db_session, slot, date(2026, 10, 26))
    deactivate_time_slot(db_session, slot, now=FIXED_NOW)

    with pytest.raises(StateConflictError):
        reinstate_time_slot_week(db_session, slot, date(2026, 10, 26), today=TODAY, now=FIXED_NOW)

    db_session.flush()
    statuses = db_session.execute(select(TutoringSession.status)).scalars().all()
    cancellations = db_session.execute(
        select(SlotCancellation.week_start).where(SlotCancellation.time_slot_id == slot.id)
    ).scalars().all()
    assert statuses == [SessionStatus.cancelled, SessionStatus.cancelled]
    assert cancellations == [date(2026, 10, 26)]


def test_reinstate_without_cancellation_is_not_found(db_session, make_slot):
    slot = make_slot()

    with pytest.raises(ResourceNotFoundError):
        reinstate_time_slot_week(db_session, slot, date(2026, 10, 26), today=TODAY)
