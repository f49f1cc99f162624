from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, computed_field, field_validator

from slotforge.models.tutor_assignment import RecurrencePattern
from slotforge.models.tutoring_session import SessionStatus
from slotforge.services.recurrence_calendar import as_utc

SkipReason = Literal[
    "past",
    "slot-inactive",
    "week-cancelled",
    "already-materialized",
    "tutor-conflict",
]


class SessionOut(BaseModel):
    id: str
    time_slot_id: str | None = None
    class_id: str
    subject: str
    scheduled_start: datetime
    scheduled_end: datetime
    tutor_id: str | None = None
    status: SessionStatus
    cancellation_reason: str | None = None

    model_config = {"from_attributes": True}

    @field_validator("scheduled_start", "scheduled_end")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class SkippedOccurrence(BaseModel):
    occurrence_date: date
    scheduled_start: datetime
    reason: SkipReason
    session_id: str | None = None
    tutor_id: str | None = None


class AssignmentWarning(BaseModel):
    """Data-quality signal: several assignments of one kind claim a date."""

    code: Literal["ambiguous-assignment"] = "ambiguous-assignment"
    occurrence_date: date
    pattern: RecurrencePattern
    winner_assignment_id: str
    assignment_ids: list[str]


class MaterializeRequest(BaseModel):
    weeks_ahead: int | None = Field(default=None, alias="weeksAhead", ge=1)

    model_config = {"populate_by_name": True}


class MaterializationResult(BaseModel):
    time_slot_id: str
    class_id: str
    weeks_ahead: int
    created: list[SessionOut] = Field(default_factory=list)
    skipped: list[SkippedOccurrence] = Field(default_factory=list)
    warnings: list[AssignmentWarning] = Field(default_factory=list)

    @computed_field
    @property
    def created_count(self) -> int:
        return len(self.created)

    @computed_field
    @property
    def assigned_session_ids(self) -> list[str]:
        return [item.id for item in self.created if item.tutor_id is not None]

    @computed_field
    @property
    def unassigned_session_ids(self) -> list[str]:
        return [item.id for item in self.created if item.tutor_id is None]


class ClassMaterializationResult(BaseModel):
    class_id: str
    weeks_ahead: int
    time_slots_processed: int
    sessions_generated: int
    assigned_session_ids: list[str]
    unassigned_session_ids: list[str]
    results: list[MaterializationResult]
    summary: str


class MaintenanceError(BaseModel):
    time_slot_id: str
    class_id: str
    error: str


class MaintenanceResult(BaseModel):
    weeks_ahead: int
    classes_processed: int
    time_slots_processed: int
    sessions_generated: int
    assigned_sessions: int
    unassigned_sessions: int
    errors: list[MaintenanceError] = Field(default_factory=list)
    duration_ms: int
    summary: str


class PreviewRequest(BaseModel):
    weeks_ahead: int | None = Field(default=None, alias="weeksAhead", ge=1)

    model_config = {"populate_by_name": True}


class PreviewEntry(BaseModel):
    week_start: date = Field(alias="weekStart")
    session_date: date = Field(alias="sessionDate")
    scheduled_start: datetime = Field(alias="scheduledStart")
    scheduled_end: datetime = Field(alias="scheduledEnd")
    tutor_id: str | None = Field(default=None, alias="tutorId")
    tutor_name: str = Field(alias="tutorName")
    cancelled: bool = False

    model_config = {"populate_by_name": True}


class PreviewOut(BaseModel):
    time_slot_id: str
    weeks_ahead: int
    sessions: list[PreviewEntry]
