from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from time import perf_counter

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotforge.core.config import get_settings
from slotforge.core.exceptions import AppError
from slotforge.models.time_slot import TimeSlotTemplate
from slotforge.schemas.session import MaintenanceError, MaintenanceResult
from slotforge.services.session_materializer import (
    materialize_time_slot,
    summarize_generation,
    validate_weeks_ahead,
)

logger = logging.getLogger(__name__)


def maintain_session_window(
    db: Session,
    *,
    today: date,
    now: datetime | None = None,
    weeks_ahead: int | None = None,
    zone: tzinfo | None = None,
) -> MaintenanceResult:
    """Keep every active slot materialized for the rolling window.

    A slot whose data is rejected by the engine is reported in ``errors``
    and the remaining slots are still processed.
    """
    weeks_ahead = validate_weeks_ahead(weeks_ahead or get_settings().session_window_weeks)
    started = perf_counter()
    slots = db.execute(
        select(TimeSlotTemplate)
        .where(TimeSlotTemplate.is_active.is_(True))
        .order_by(TimeSlotTemplate.class_id, TimeSlotTemplate.day_of_week, TimeSlotTemplate.start_time)
    ).scalars().all()
    logger.info(
        "SESSION WINDOW MAINTENANCE START | time_slots=%s | weeks_ahead=%s | today=%s",
        len(slots),
        weeks_ahead,
        today.isoformat(),
    )

    class_ids: set[str] = set()
    generating_classes: set[str] = set()
    assigned = 0
    unassigned = 0
    errors: list[MaintenanceError] = []
    for slot in slots:
        class_ids.add(slot.class_id)
        try:
            result = materialize_time_slot(db, slot, weeks_ahead, today=today, now=now, zone=zone)
        except AppError as exc:
            logger.exception(
                "SESSION WINDOW MAINTENANCE SLOT FAILED | time_slot_id=%s | class_id=%s",
                slot.id,
                slot.class_id,
            )
            errors.append(MaintenanceError(time_slot_id=slot.id, class_id=slot.class_id, error=exc.message))
            continue
        assigned += len(result.assigned_session_ids)
        unassigned += len(result.unassigned_session_ids)
        if result.created_count:
            generating_classes.add(slot.class_id)

    generated = assigned + unassigned
    duration_ms = int((perf_counter() - started) * 1000)
    if errors:
        logger.warning("SESSION WINDOW MAINTENANCE ERRORS | count=%s", len(errors))
    logger.info(
        "SESSION WINDOW MAINTENANCE COMPLETE | classes=%s | generated=%s | assigned=%s | unassigned=%s | wall_ms=%s",
        len(class_ids),
        generated,
        assigned,
        unassigned,
        duration_ms,
    )
    return MaintenanceResult(
        weeks_ahead=weeks_ahead,
        classes_processed=len(class_ids),
        time_slots_processed=len(slots),
        sessions_generated=generated,
        assigned_sessions=assigned,
        unassigned_sessions=unassigned,
        errors=errors,
        duration_ms=duration_ms,
        summary=summarize_generation(generated, len(generating_classes)),
    )
