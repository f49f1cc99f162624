from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotforge.core.config import get_settings
from slotforge.core.exceptions import (
    PermissionDeniedError,
    ResourceNotFoundError,
    StateConflictError,
    ValidationError,
)
from slotforge.models.time_slot import SlotCancellation, TimeSlotTemplate
from slotforge.models.tutor import Tutor, TutorUnavailability
from slotforge.models.tutor_assignment import AssignmentStatus, TutorAssignment
from slotforge.models.tutoring_session import SessionStatus, TutoringSession
from slotforge.schemas.assignment import AssignmentCreate
from slotforge.schemas.recurrence import dump_recurrence_config, parse_recurrence_config
from slotforge.schemas.session import MaterializationResult
from slotforge.schemas.time_slot import TimeSlotCreate
from slotforge.schemas.tutor import TutorCreate, UnavailabilityCreate
from slotforge.services.audit import log_activity
from slotforge.services.recurrence_calendar import (
    as_utc,
    day_name,
    next_occurrence_on_or_after,
    occurrence_window,
    parse_time_to_minutes,
    schedule_zone,
    week_start,
)
from slotforge.services.session_materializer import materialize_occurrences

logger = logging.getLogger(__name__)

ACTIVE_SESSION_STATUSES = (SessionStatus.pending, SessionStatus.confirmed)
WEEK_CANCELLED_PREFIX = "Week cancelled"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _zone(zone: tzinfo | None) -> tzinfo:
    return zone or schedule_zone(get_settings().schedule_timezone)


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


# Tutors


def get_tutor(db: Session, tutor_id: str) -> Tutor:
    tutor = db.get(Tutor, tutor_id)
    if tutor is None:
        raise ResourceNotFoundError("Tutor", tutor_id)
    return tutor


def register_tutor(db: Session, payload: TutorCreate) -> Tutor:
    if payload.id is not None and db.get(Tutor, payload.id) is not None:
        raise StateConflictError(f"Tutor {payload.id} already exists")
    tutor = Tutor(name=payload.name.strip(), email=_normalize_text(payload.email))
    if payload.id is not None:
        tutor.id = payload.id
    db.add(tutor)
    db.flush()
    return tutor


def add_tutor_unavailability(db: Session, tutor: Tutor, payload: UnavailabilityCreate) -> TutorUnavailability:
    block = TutorUnavailability(
        tutor_id=tutor.id,
        starts_at=as_utc(payload.starts_at),
        ends_at=as_utc(payload.ends_at),
        reason=_normalize_text(payload.reason),
    )
    db.add(block)
    db.flush()
    return block


# Time slots


def get_time_slot(db: Session, time_slot_id: str) -> TimeSlotTemplate:
    slot = db.get(TimeSlotTemplate, time_slot_id)
    if slot is None:
        raise ResourceNotFoundError("Time slot", time_slot_id)
    return slot


def list_time_slots(db: Session, class_id: str, *, include_inactive: bool = False) -> list[TimeSlotTemplate]:
    query = select(TimeSlotTemplate).where(TimeSlotTemplate.class_id == class_id)
    if not include_inactive:
        query = query.where(TimeSlotTemplate.is_active.is_(True))
    query = query.order_by(TimeSlotTemplate.day_of_week, TimeSlotTemplate.start_time, TimeSlotTemplate.id)
    return list(db.execute(query).scalars())


def create_time_slot(
    db: Session,
    class_id: str,
    payload: TimeSlotCreate,
    *,
    today: date,
    actor_id: str | None = None,
) -> TimeSlotTemplate:
    if parse_time_to_minutes(payload.start_time) >= parse_time_to_minutes(payload.end_time):
        raise ValidationError("startTime must be before endTime")
    epoch = next_occurrence_on_or_after(payload.starts_on or today, payload.day_of_week)
    slot = TimeSlotTemplate(
        class_id=class_id,
        subject=payload.subject.strip(),
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
        epoch_date=epoch,
        is_active=True,
    )
    db.add(slot)
    db.flush()
    log_activity(
        db,
        actor_id=actor_id,
        action="time_slot.create",
        entity_type="time_slot",
        entity_id=slot.id,
        details={
            "class_id": class_id,
            "day": day_name(slot.day_of_week),
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "epoch_date": epoch.isoformat(),
        },
    )
    return slot


def cancel_future_sessions(db: Session, slot: TimeSlotTemplate, *, now: datetime, reason: str) -> int:
    sessions = db.execute(
        select(TutoringSession).where(
            TutoringSession.time_slot_id == slot.id,
            TutoringSession.scheduled_start >= as_utc(now),
            TutoringSession.status.in_(ACTIVE_SESSION_STATUSES),
        )
    ).scalars().all()
    for session in sessions:
        session.status = SessionStatus.cancelled
        session.cancellation_reason = reason
    db.flush()
    return len(sessions)


def deactivate_time_slot(
    db: Session,
    slot: TimeSlotTemplate,
    *,
    now: datetime,
    reason: str | None = None,
    actor_id: str | None = None,
) -> int:
    """Stop offering a slot. Past sessions stay as history; future ones are cancelled."""
    if not slot.is_active:
        raise StateConflictError("Time slot is already inactive", details={"time_slot_id": slot.id})
    slot.is_active = False
    slot.deactivated_at = as_utc(now)
    cancellation_reason = _normalize_text(reason) or (
        f"Time slot deactivated: {slot.subject} on {day_name(slot.day_of_week)} "
        f"{slot.start_time}-{slot.end_time}"
    )
    cancelled = cancel_future_sessions(db, slot, now=now, reason=cancellation_reason)
    log_activity(
        db,
        actor_id=actor_id,
        action="time_slot.deactivate",
        entity_type="time_slot",
        entity_id=slot.id,
        details={"cancelled_sessions": cancelled},
    )
    logger.info("TIME SLOT DEACTIVATED | time_slot_id=%s | cancelled_sessions=%s", slot.id, cancelled)
    return cancelled


def list_cancellations(db: Session, time_slot_id: str) -> list[SlotCancellation]:
    return list(
        db.execute(
            select(SlotCancellation)
            .where(SlotCancellation.time_slot_id == time_slot_id)
            .order_by(SlotCancellation.week_start.desc())
        ).scalars()
    )


def _week_occurrence(slot: TimeSlotTemplate, monday: date) -> date:
    return next_occurrence_on_or_after(monday, slot.day_of_week)


def _session_at(db: Session, slot: TimeSlotTemplate, scheduled_start: datetime) -> TutoringSession | None:
    return db.execute(
        select(TutoringSession).where(
            TutoringSession.time_slot_id == slot.id,
            TutoringSession.scheduled_start == scheduled_start,
        )
    ).scalar_one_or_none()


def cancel_time_slot_week(
    db: Session,
    slot: TimeSlotTemplate,
    week: date,
    *,
    reason: str | None = None,
    actor_id: str | None = None,
    zone: tzinfo | None = None,
) -> tuple[SlotCancellation, int]:
    if not slot.is_active:
        raise StateConflictError("Cannot cancel a week of an inactive time slot", details={"time_slot_id": slot.id})
    monday = week_start(week)
    existing = db.execute(
        select(SlotCancellation).where(
            SlotCancellation.time_slot_id == slot.id,
            SlotCancellation.week_start == monday,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise StateConflictError(
            "This time slot is already cancelled for this week",
            details={"time_slot_id": slot.id, "week_start": monday.isoformat()},
        )

    note = _normalize_text(reason)
    cancellation = SlotCancellation(time_slot_id=slot.id, week_start=monday, reason=note, created_by=actor_id)
    db.add(cancellation)

    cancelled = 0
    scheduled_start, _ = occurrence_window(slot, _week_occurrence(slot, monday), _zone(zone))
    session = _session_at(db, slot, scheduled_start)
    if session is not None and session.status in ACTIVE_SESSION_STATUSES:
        session.status = SessionStatus.cancelled
        session.cancellation_reason = f"{WEEK_CANCELLED_PREFIX}: {note}" if note else WEEK_CANCELLED_PREFIX
        cancelled = 1
    db.flush()

    log_activity(
        db,
        actor_id=actor_id,
        action="time_slot.week.cancel",
        entity_type="time_slot",
        entity_id=slot.id,
        details={"week_start": monday.isoformat(), "cancelled_sessions": cancelled},
    )
    return cancellation, cancelled


def reinstate_time_slot_week(
    db: Session,
    slot: TimeSlotTemplate,
    week: date,
    *,
    today: date,
    now: datetime | None = None,
    actor_id: str | None = None,
    zone: tzinfo | None = None,
) -> MaterializationResult:
    """Lift a week cancellation and bring the week's session back.

    A session cancelled by the week cancellation is restored with its frozen
    tutor; otherwise the occurrence is materialized as usual.
    """
    if not slot.is_active:
        raise StateConflictError(
            "Cannot reinstate a week of an inactive time slot", details={"time_slot_id": slot.id}
        )
    monday = week_start(week)
    cancellation = db.execute(
        select(SlotCancellation).where(
            SlotCancellation.time_slot_id == slot.id,
            SlotCancellation.week_start == monday,
        )
    ).scalar_one_or_none()
    if cancellation is None:
        raise ResourceNotFoundError("Slot cancellation", f"{slot.id}@{monday.isoformat()}")
    db.delete(cancellation)
    db.flush()

    zone = _zone(zone)
    occurrence = _week_occurrence(slot, monday)
    scheduled_start, _ = occurrence_window(slot, occurrence, zone)
    session = _session_at(db, slot, scheduled_start)
    if session is not None and session.status == SessionStatus.cancelled:
        if (session.cancellation_reason or "").startswith(WEEK_CANCELLED_PREFIX):
            session.status = SessionStatus.confirmed if session.tutor_id else SessionStatus.pending
            session.cancellation_reason = None
            db.flush()

    result = materialize_occurrences(db, slot, [occurrence], weeks_ahead=1, today=today, now=now, zone=zone)
    log_activity(
        db,
        actor_id=actor_id,
        action="time_slot.week.reinstate",
        entity_type="time_slot",
        entity_id=slot.id,
        details={"week_start": monday.isoformat(), "created_sessions": result.created_count},
    )
    return result


# Assignments


def get_assignment(db: Session, assignment_id: str) -> TutorAssignment:
    assignment = db.get(TutorAssignment, assignment_id)
    if assignment is None:
        raise ResourceNotFoundError("Assignment", assignment_id)
    return assignment


def list_assignments(db: Session, time_slot_id: str, *, include_removed: bool = False) -> list[TutorAssignment]:
    query = select(TutorAssignment).where(TutorAssignment.time_slot_id == time_slot_id)
    if not include_removed:
        query = query.where(TutorAssignment.is_active.is_(True))
    query = query.order_by(TutorAssignment.created_at, TutorAssignment.id)
    return list(db.execute(query).scalars())


def create_assignment(
    db: Session,
    slot: TimeSlotTemplate,
    payload: AssignmentCreate,
    *,
    today: date,
    actor_id: str | None = None,
) -> TutorAssignment:
    """Invite a tutor to a slot. The recurrence config is validated here, once."""
    if not slot.is_active:
        raise StateConflictError("Cannot assign tutors to an inactive time slot", details={"time_slot_id": slot.id})
    tutor = get_tutor(db, payload.tutor_id)
    if not tutor.is_active:
        raise StateConflictError(f"Tutor {tutor.id} is not active")

    config = parse_recurrence_config(payload.recurrence_pattern, payload.recurrence_config)
    start_date = payload.start_date or today
    if payload.end_date is not None and payload.end_date < start_date:
        raise ValidationError(
            "endDate must not be before startDate",
            details={"start_date": start_date.isoformat(), "end_date": payload.end_date.isoformat()},
        )

    assignment = TutorAssignment(
        time_slot_id=slot.id,
        tutor_id=tutor.id,
        status=AssignmentStatus.pending,
        recurrence_pattern=payload.recurrence_pattern,
        recurrence_config=dump_recurrence_config(config),
        start_date=start_date,
        end_date=payload.end_date,
        is_active=True,
    )
    db.add(assignment)
    db.flush()
    log_activity(
        db,
        actor_id=actor_id,
        action="assignment.create",
        entity_type="tutor_assignment",
        entity_id=assignment.id,
        details={
            "time_slot_id": slot.id,
            "tutor_id": tutor.id,
            "recurrence_pattern": payload.recurrence_pattern.value,
        },
    )
    return assignment


def update_assignment_status(
    db: Session,
    assignment: TutorAssignment,
    status: AssignmentStatus,
    *,
    tutor_id: str | None = None,
    now: datetime | None = None,
) -> TutorAssignment:
    """Accept or decline a pending invitation. Both outcomes are terminal."""
    if status not in (AssignmentStatus.accepted, AssignmentStatus.declined):
        raise ValidationError(f"Cannot move an assignment to {status.value}")
    if tutor_id is not None and tutor_id != assignment.tutor_id:
        raise PermissionDeniedError("Only the assigned tutor can update assignment status")
    if not assignment.is_active:
        raise StateConflictError("Assignment has been removed", details={"assignment_id": assignment.id})
    if assignment.status != AssignmentStatus.pending:
        raise StateConflictError(
            f"Assignment already {assignment.status.value}",
            details={"assignment_id": assignment.id, "status": assignment.status.value},
        )
    assignment.status = status
    assignment.responded_at = as_utc(now) if now is not None else _utc_now()
    db.flush()
    log_activity(
        db,
        actor_id=assignment.tutor_id,
        action=f"assignment.{status.value}",
        entity_type="tutor_assignment",
        entity_id=assignment.id,
    )
    return assignment


def remove_assignment(
    db: Session,
    assignment: TutorAssignment,
    *,
    now: datetime | None = None,
    actor_id: str | None = None,
) -> TutorAssignment:
    """Unassign a tutor. Sessions already materialized keep their tutor."""
    if not assignment.is_active:
        raise StateConflictError("Assignment has already been removed", details={"assignment_id": assignment.id})
    assignment.is_active = False
    assignment.removed_at = as_utc(now) if now is not None else _utc_now()
    db.flush()
    log_activity(
        db,
        actor_id=actor_id,
        action="assignment.remove",
        entity_type="tutor_assignment",
        entity_id=assignment.id,
    )
    return assignment
