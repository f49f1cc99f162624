from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, tzinfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotforge.core.config import get_settings
from slotforge.models.time_slot import TimeSlotTemplate
from slotforge.models.tutor import Tutor
from slotforge.schemas.session import PreviewEntry
from slotforge.services.recurrence_calendar import (
    occurrence_dates,
    occurrence_window,
    past_cutoff,
    schedule_zone,
    week_start,
)
from slotforge.services.rotation import AssignmentSnapshot, resolve
from slotforge.services.session_materializer import (
    load_assignment_snapshot,
    load_cancelled_weeks,
    validate_weeks_ahead,
)


def preview_occurrences(
    slot,
    assignments: Iterable[AssignmentSnapshot],
    weeks_ahead: int,
    *,
    today: date,
    now: datetime | None = None,
    tutor_names: Mapping[str, str] | None = None,
    cancelled_weeks: Iterable[date] = (),
    zone: tzinfo | None = None,
    unassigned_label: str | None = None,
) -> list[PreviewEntry]:
    """Calendar preview of who teaches each upcoming occurrence.

    Uses the same date enumeration and resolver as materialization but never
    writes and never consults the conflict checker. Occurrences that have
    already started are left out, as materialization skips them.
    """
    settings = get_settings()
    zone = zone or schedule_zone(settings.schedule_timezone)
    label = unassigned_label if unassigned_label is not None else settings.unassigned_tutor_label
    names = tutor_names or {}
    cancelled = frozenset(cancelled_weeks)
    snapshot = list(assignments)
    cutoff = past_cutoff(today, now, zone)

    entries: list[PreviewEntry] = []
    for occurrence in occurrence_dates(slot.day_of_week, weeks_ahead, today):
        scheduled_start, scheduled_end = occurrence_window(slot, occurrence, zone)
        if scheduled_start < cutoff:
            continue
        tutor_id = resolve(slot, occurrence, snapshot).tutor_id
        if tutor_id is None:
            tutor_name = label
        else:
            tutor_name = names.get(tutor_id, tutor_id)
        entries.append(
            PreviewEntry(
                week_start=week_start(occurrence),
                session_date=occurrence,
                scheduled_start=scheduled_start,
                scheduled_end=scheduled_end,
                tutor_id=tutor_id,
                tutor_name=tutor_name,
                cancelled=week_start(occurrence) in cancelled,
            )
        )
    return entries


def build_time_slot_preview(
    db: Session,
    slot: TimeSlotTemplate,
    weeks_ahead: int,
    *,
    today: date,
    now: datetime | None = None,
    zone: tzinfo | None = None,
) -> list[PreviewEntry]:
    validate_weeks_ahead(weeks_ahead)
    snapshot = load_assignment_snapshot(db, slot.id)
    tutor_ids = {item.tutor_id for item in snapshot}
    names: dict[str, str] = {}
    if tutor_ids:
        rows = db.execute(select(Tutor.id, Tutor.name).where(Tutor.id.in_(tutor_ids))).all()
        names = {row.id: row.name for row in rows}
    return preview_occurrences(
        slot,
        snapshot,
        weeks_ahead,
        today=today,
        now=now,
        tutor_names=names,
        cancelled_weeks=load_cancelled_weeks(db, slot.id),
        zone=zone,
    )
