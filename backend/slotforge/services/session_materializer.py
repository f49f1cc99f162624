"""Expand weekly time slots into concrete, dated tutoring sessions.

Materialization is a single synchronous pass. Idempotency does not rely on
in-process locking: every write is an insert-or-skip against the
``uq_tutoring_session_occurrence`` constraint, so concurrent callers can race
for the same occurrence and exactly one row survives. The caller owns the
transaction and commits.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import date, datetime, tzinfo
from time import perf_counter

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotforge.core.config import get_settings
from slotforge.core.exceptions import ValidationError
from slotforge.models.time_slot import SlotCancellation, TimeSlotTemplate
from slotforge.models.tutor_assignment import AssignmentStatus, TutorAssignment
from slotforge.models.tutoring_session import SessionStatus, TutoringSession
from slotforge.schemas.session import (
    AssignmentWarning,
    ClassMaterializationResult,
    MaterializationResult,
    SessionOut,
    SkippedOccurrence,
)
from slotforge.services.conflict_service import ConflictChecker
from slotforge.services.recurrence_calendar import (
    occurrence_dates,
    occurrence_window,
    past_cutoff,
    schedule_zone,
    week_start,
)
from slotforge.services.rotation import AssignmentSnapshot, Resolution, resolve

logger = logging.getLogger(__name__)

OCCURRENCE_CONFLICT_COLUMNS = ("time_slot_id", "scheduled_start")


def load_assignment_snapshot(db: Session, time_slot_id: str) -> list[AssignmentSnapshot]:
    """ACCEPTED, active assignments of a slot in creation order."""
    rows = db.execute(
        select(TutorAssignment)
        .where(
            TutorAssignment.time_slot_id == time_slot_id,
            TutorAssignment.status == AssignmentStatus.accepted,
            TutorAssignment.is_active.is_(True),
        )
        .order_by(TutorAssignment.created_at, TutorAssignment.id)
    ).scalars()
    return [AssignmentSnapshot.from_model(row) for row in rows]


def load_cancelled_weeks(db: Session, time_slot_id: str) -> frozenset[date]:
    rows = db.execute(
        select(SlotCancellation.week_start).where(SlotCancellation.time_slot_id == time_slot_id)
    ).scalars()
    return frozenset(rows)


def validate_weeks_ahead(weeks_ahead: int) -> int:
    settings = get_settings()
    if isinstance(weeks_ahead, bool) or not isinstance(weeks_ahead, int) or weeks_ahead < 1:
        raise ValidationError("weeksAhead must be a positive integer", details={"weeks_ahead": weeks_ahead})
    if weeks_ahead > settings.max_weeks_ahead:
        raise ValidationError(
            f"weeksAhead cannot exceed {settings.max_weeks_ahead}",
            details={"weeks_ahead": weeks_ahead, "max_weeks_ahead": settings.max_weeks_ahead},
        )
    return weeks_ahead


def _session_exists(db: Session, time_slot_id: str, scheduled_start: datetime) -> bool:
    found = db.execute(
        select(TutoringSession.id).where(
            TutoringSession.time_slot_id == time_slot_id,
            TutoringSession.scheduled_start == scheduled_start,
        )
    ).first()
    return found is not None


def insert_session_if_absent(db: Session, values: dict) -> bool:
    """Atomically insert a session row unless its occurrence already exists.

    Returns False when another row already holds ``(time_slot_id,
    scheduled_start)``; the unique constraint decides, not this process.
    """
    dialect = db.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        dialect_insert = postgresql_insert if dialect == "postgresql" else sqlite_insert
        statement = (
            dialect_insert(TutoringSession.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(OCCURRENCE_CONFLICT_COLUMNS))
        )
        return db.execute(statement).rowcount == 1

    try:
        with db.begin_nested():
            db.execute(insert(TutoringSession.__table__).values(**values))
    except IntegrityError:
        return False
    return True


def _warnings_for(resolution: Resolution) -> list[AssignmentWarning]:
    warnings = []
    for claim in resolution.ambiguities:
        logger.warning(
            "AMBIGUOUS ASSIGNMENT | occurrence=%s | pattern=%s | winner=%s | claimants=%s",
            claim.occurrence_date.isoformat(),
            claim.pattern.value,
            claim.winner_assignment_id,
            ",".join(claim.assignment_ids),
        )
        warnings.append(
            AssignmentWarning(
                occurrence_date=claim.occurrence_date,
                pattern=claim.pattern,
                winner_assignment_id=claim.winner_assignment_id,
                assignment_ids=list(claim.assignment_ids),
            )
        )
    return warnings


def materialize_occurrences(
    db: Session,
    slot: TimeSlotTemplate,
    dates: Iterable[date],
    *,
    weeks_ahead: int,
    today: date,
    now: datetime | None = None,
    zone: tzinfo | None = None,
) -> MaterializationResult:
    zone = zone or schedule_zone(get_settings().schedule_timezone)
    reference = past_cutoff(today, now, zone)
    result = MaterializationResult(time_slot_id=slot.id, class_id=slot.class_id, weeks_ahead=weeks_ahead)
    dates = list(dates)

    if not slot.is_active:
        for occurrence in dates:
            scheduled_start, _ = occurrence_window(slot, occurrence, zone)
            result.skipped.append(
                SkippedOccurrence(occurrence_date=occurrence, scheduled_start=scheduled_start, reason="slot-inactive")
            )
        logger.info("SESSION MATERIALIZATION SKIPPED | time_slot_id=%s | reason=slot-inactive", slot.id)
        return result

    snapshot = load_assignment_snapshot(db, slot.id)
    cancelled_weeks = load_cancelled_weeks(db, slot.id)
    checker = ConflictChecker(db)

    for occurrence in dates:
        scheduled_start, scheduled_end = occurrence_window(slot, occurrence, zone)

        skip_reason = None
        if scheduled_start < reference:
            skip_reason = "past"
        elif week_start(occurrence) in cancelled_weeks:
            skip_reason = "week-cancelled"
        elif _session_exists(db, slot.id, scheduled_start):
            skip_reason = "already-materialized"
        if skip_reason is not None:
            result.skipped.append(
                SkippedOccurrence(occurrence_date=occurrence, scheduled_start=scheduled_start, reason=skip_reason)
            )
            continue

        resolution = resolve(slot, occurrence, snapshot)
        result.warnings.extend(_warnings_for(resolution))

        tutor_id = resolution.tutor_id
        conflicted = tutor_id is not None and checker.has_conflict(tutor_id, scheduled_start, scheduled_end)
        if conflicted:
            logger.info(
                "SESSION TUTOR CONFLICT | time_slot_id=%s | occurrence=%s | tutor_id=%s",
                slot.id,
                occurrence.isoformat(),
                tutor_id,
            )
            tutor_id = None

        session_id = str(uuid.uuid4())
        inserted = insert_session_if_absent(
            db,
            {
                "id": session_id,
                "time_slot_id": slot.id,
                "class_id": slot.class_id,
                "subject": slot.subject,
                "scheduled_start": scheduled_start,
                "scheduled_end": scheduled_end,
                "tutor_id": tutor_id,
                "status": SessionStatus.confirmed if tutor_id else SessionStatus.pending,
            },
        )
        if not inserted:
            result.skipped.append(
                SkippedOccurrence(
                    occurrence_date=occurrence,
                    scheduled_start=scheduled_start,
                    reason="already-materialized",
                )
            )
            continue

        session = db.get(TutoringSession, session_id)
        result.created.append(SessionOut.model_validate(session))
        if conflicted:
            result.skipped.append(
                SkippedOccurrence(
                    occurrence_date=occurrence,
                    scheduled_start=scheduled_start,
                    reason="tutor-conflict",
                    session_id=session_id,
                    tutor_id=resolution.tutor_id,
                )
            )
    return result


def materialize_time_slot(
    db: Session,
    slot: TimeSlotTemplate,
    weeks_ahead: int,
    *,
    today: date,
    now: datetime | None = None,
    zone: tzinfo | None = None,
) -> MaterializationResult:
    """Materialize ``weeks_ahead`` weekly occurrences of ``slot`` from ``today``.

    Occurrence ``w`` is the first ``slot.day_of_week`` on or after ``today``
    plus ``w`` weeks. Already generated, past and cancelled occurrences are
    skipped, so calling this repeatedly never accumulates duplicates.
    """
    validate_weeks_ahead(weeks_ahead)
    started = perf_counter()
    logger.info(
        "SESSION MATERIALIZATION START | time_slot_id=%s | class_id=%s | weeks_ahead=%s | today=%s",
        slot.id,
        slot.class_id,
        weeks_ahead,
        today.isoformat(),
    )
    result = materialize_occurrences(
        db,
        slot,
        occurrence_dates(slot.day_of_week, weeks_ahead, today),
        weeks_ahead=weeks_ahead,
        today=today,
        now=now,
        zone=zone,
    )
    logger.info(
        "SESSION MATERIALIZATION COMPLETE | time_slot_id=%s | created=%s | assigned=%s | unassigned=%s | skipped=%s | warnings=%s | wall_ms=%s",
        slot.id,
        result.created_count,
        len(result.assigned_session_ids),
        len(result.unassigned_session_ids),
        len(result.skipped),
        len(result.warnings),
        int((perf_counter() - started) * 1000),
    )
    return result


def summarize_generation(sessions_generated: int, classes: int) -> str:
    session_label = "session" if sessions_generated == 1 else "sessions"
    class_label = "class" if classes == 1 else "classes"
    return f"{sessions_generated} {session_label} generated across {classes} {class_label}"


def materialize_class(
    db: Session,
    class_id: str,
    weeks_ahead: int,
    *,
    today: date,
    now: datetime | None = None,
    zone: tzinfo | None = None,
) -> ClassMaterializationResult:
    validate_weeks_ahead(weeks_ahead)
    slots = db.execute(
        select(TimeSlotTemplate)
        .where(TimeSlotTemplate.class_id == class_id, TimeSlotTemplate.is_active.is_(True))
        .order_by(TimeSlotTemplate.day_of_week, TimeSlotTemplate.start_time, TimeSlotTemplate.id)
    ).scalars().all()
    if not slots:
        logger.info("SESSION MATERIALIZATION SKIPPED | class_id=%s | reason=no-active-time-slots", class_id)

    results = [
        materialize_time_slot(db, slot, weeks_ahead, today=today, now=now, zone=zone)
        for slot in slots
    ]
    assigned = [session_id for item in results for session_id in item.assigned_session_ids]
    unassigned = [session_id for item in results for session_id in item.unassigned_session_ids]
    generated = len(assigned) + len(unassigned)
    return ClassMaterializationResult(
        class_id=class_id,
        weeks_ahead=weeks_ahead,
        time_slots_processed=len(slots),
        sessions_generated=generated,
        assigned_session_ids=assigned,
        unassigned_session_ids=unassigned,
        results=results,
        summary=summarize_generation(generated, 1 if generated else 0),
    )
