import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotforge.api.deps import get_actor_id, get_db, get_now, get_today, resolve_weeks_ahead
from slotforge.models.tutoring_session import SessionStatus, TutoringSession
from slotforge.schemas.session import (
    ClassMaterializationResult,
    MaintenanceResult,
    MaterializationResult,
    MaterializeRequest,
    PreviewOut,
    PreviewRequest,
    SessionOut,
)
from slotforge.services.audit import log_activity
from slotforge.services.class_schedule import get_time_slot
from slotforge.services.preview import build_time_slot_preview
from slotforge.services.session_maintenance import maintain_session_window
from slotforge.services.session_materializer import materialize_class, materialize_time_slot

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/time-slots/{time_slot_id}/preview", response_model=PreviewOut, response_model_by_alias=True)
def preview_time_slot(
    time_slot_id: str,
    payload: PreviewRequest | None = None,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
) -> PreviewOut:
    slot = get_time_slot(db, time_slot_id)
    weeks_ahead = resolve_weeks_ahead(payload.weeks_ahead if payload else None)
    sessions = build_time_slot_preview(db, slot, weeks_ahead, today=today, now=now)
    return PreviewOut(time_slot_id=slot.id, weeks_ahead=weeks_ahead, sessions=sessions)


@router.post("/time-slots/{time_slot_id}/materialize", response_model=MaterializationResult)
def materialize_slot(
    time_slot_id: str,
    payload: MaterializeRequest | None = None,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    actor_id: str | None = Depends(get_actor_id),
) -> MaterializationResult:
    slot = get_time_slot(db, time_slot_id)
    weeks_ahead = resolve_weeks_ahead(payload.weeks_ahead if payload else None)
    try:
        result = materialize_time_slot(db, slot, weeks_ahead, today=today, now=now)
        log_activity(
            db,
            actor_id=actor_id,
            action="sessions.materialize",
            entity_type="time_slot",
            entity_id=slot.id,
            details={"weeks_ahead": weeks_ahead, "created": result.created_count},
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("SESSION MATERIALIZATION FAILED | time_slot_id=%s | weeks_ahead=%s", slot.id, weeks_ahead)
        raise
    return result


@router.get("/time-slots/{time_slot_id}/sessions", response_model=list[SessionOut])
def list_slot_sessions(
    time_slot_id: str,
    session_status: SessionStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[SessionOut]:
    slot = get_time_slot(db, time_slot_id)
    query = select(TutoringSession).where(TutoringSession.time_slot_id == slot.id)
    if session_status is not None:
        query = query.where(TutoringSession.status == session_status)
    sessions = db.execute(query.order_by(TutoringSession.scheduled_start)).scalars().all()
    return [SessionOut.model_validate(item) for item in sessions]


@router.post("/classes/{class_id}/sessions/generate", response_model=ClassMaterializationResult)
def generate_class_sessions(
    class_id: str,
    payload: MaterializeRequest | None = None,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    actor_id: str | None = Depends(get_actor_id),
) -> ClassMaterializationResult:
    weeks_ahead = resolve_weeks_ahead(payload.weeks_ahead if payload else None)
    try:
        result = materialize_class(db, class_id, weeks_ahead, today=today, now=now)
        log_activity(
            db,
            actor_id=actor_id,
            action="sessions.generate_class",
            entity_type="class",
            entity_id=class_id,
            details={"weeks_ahead": weeks_ahead, "generated": result.sessions_generated},
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("CLASS SESSION GENERATION FAILED | class_id=%s | weeks_ahead=%s", class_id, weeks_ahead)
        raise
    return result


@router.post("/sessions/maintenance", response_model=MaintenanceResult)
def run_session_maintenance(
    payload: MaterializeRequest | None = None,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    actor_id: str | None = Depends(get_actor_id),
) -> MaintenanceResult:
    try:
        result = maintain_session_window(
            db,
            today=today,
            now=now,
            weeks_ahead=payload.weeks_ahead if payload else None,
        )
        log_activity(
            db,
            actor_id=actor_id,
            action="sessions.maintenance",
            details={"generated": result.sessions_generated, "errors": len(result.errors)},
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("SESSION WINDOW MAINTENANCE FAILED")
        raise
    return result
