from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotforge.models.tutor import TutorUnavailability
from slotforge.models.tutoring_session import SessionStatus, TutoringSession
from slotforge.schemas.tutor import TutorConflict, TutorConflictReport
from slotforge.services.recurrence_calendar import as_utc

BLOCKING_SESSION_STATUSES = (SessionStatus.pending, SessionStatus.confirmed)


class ConflictChecker:
    """Advisory check of a tutor's other commitments against a time window.

    Overlap is half-open: ``existing.start < end and start < existing.end``,
    so back-to-back sessions never conflict. Reads only; callers decide what
    to do with a positive result.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_conflicts(
        self,
        tutor_id: str,
        scheduled_start: datetime,
        scheduled_end: datetime,
        exclude_session_id: str | None = None,
    ) -> list[TutorConflict]:
        start = as_utc(scheduled_start)
        end = as_utc(scheduled_end)
        conflicts: list[TutorConflict] = []

        session_query = select(TutoringSession).where(
            TutoringSession.tutor_id == tutor_id,
            TutoringSession.status.in_(BLOCKING_SESSION_STATUSES),
            TutoringSession.scheduled_start < end,
            TutoringSession.scheduled_end > start,
        )
        if exclude_session_id is not None:
            session_query = session_query.where(TutoringSession.id != exclude_session_id)
        for session in self.db.execute(session_query.order_by(TutoringSession.scheduled_start)).scalars():
            conflicts.append(
                TutorConflict(
                    kind="session",
                    reference_id=session.id,
                    starts_at=as_utc(session.scheduled_start),
                    ends_at=as_utc(session.scheduled_end),
                    description=f"Already booked for {session.subject} (class {session.class_id})",
                )
            )

        blocks = self.db.execute(
            select(TutorUnavailability)
            .where(
                TutorUnavailability.tutor_id == tutor_id,
                TutorUnavailability.starts_at < end,
                TutorUnavailability.ends_at > start,
            )
            .order_by(TutorUnavailability.starts_at)
        ).scalars()
        for block in blocks:
            conflicts.append(
                TutorConflict(
                    kind="unavailability",
                    reference_id=block.id,
                    starts_at=as_utc(block.starts_at),
                    ends_at=as_utc(block.ends_at),
                    description=block.reason or "Declared unavailable",
                )
            )
        return conflicts

    def has_conflict(
        self,
        tutor_id: str,
        scheduled_start: datetime,
        scheduled_end: datetime,
        exclude_session_id: str | None = None,
    ) -> bool:
        return bool(self.find_conflicts(tutor_id, scheduled_start, scheduled_end, exclude_session_id))

    def report(
        self,
        tutor_id: str,
        scheduled_start: datetime,
        scheduled_end: datetime,
        exclude_session_id: str | None = None,
    ) -> TutorConflictReport:
        conflicts = self.find_conflicts(tutor_id, scheduled_start, scheduled_end, exclude_session_id)
        return TutorConflictReport(tutor_id=tutor_id, has_conflict=bool(conflicts), conflicts=conflicts)
