from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from slotforge.models.tutor_assignment import AssignmentStatus, RecurrencePattern


class AssignmentCreate(BaseModel):
    tutor_id: str = Field(alias="tutorId", min_length=1, max_length=36)
    recurrence_pattern: RecurrencePattern = Field(alias="recurrencePattern")
    # Validated per pattern by the schedule service so malformed configs
    # surface as the service's ValidationError.
    recurrence_config: dict[str, Any] = Field(default_factory=dict, alias="recurrenceConfig")
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def validate_dates(self) -> "AssignmentCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class AssignmentStatusUpdate(BaseModel):
    # Only ACCEPTED or DECLINED; anything else is rejected by the service.
    status: AssignmentStatus
    tutor_id: str | None = Field(default=None, alias="tutorId", max_length=36)

    model_config = {"populate_by_name": True}


class AssignmentOut(BaseModel):
    id: str
    time_slot_id: str
    tutor_id: str
    tutor_name: str | None = None
    status: AssignmentStatus
    recurrence_pattern: RecurrencePattern
    recurrence_config: dict[str, Any]
    start_date: date
    end_date: date | None = None
    is_active: bool
    created_at: datetime
    responded_at: datetime | None = None
    removed_at: datetime | None = None

    model_config = {"from_attributes": True}
