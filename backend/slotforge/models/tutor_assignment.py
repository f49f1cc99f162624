import uuid
from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from slotforge.db.base import Base


class AssignmentStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"


class RecurrencePattern(str, Enum):
    round_robin = "round_robin"
    weekly = "weekly"
    consecutive_days = "consecutive_days"
    manual = "manual"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TutorAssignment(Base):
    __tablename__ = "tutor_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    time_slot_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    tutor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        SAEnum(AssignmentStatus, name="assignment_status"),
        nullable=False,
        default=AssignmentStatus.pending,
    )
    recurrence_pattern: Mapped[RecurrencePattern] = mapped_column(
        SAEnum(RecurrencePattern, name="recurrence_pattern"),
        nullable=False,
    )
    recurrence_config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Rotation order depends on creation order, so keep sub-second precision.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utc_now)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    removed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
