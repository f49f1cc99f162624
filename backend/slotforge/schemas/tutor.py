from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from slotforge.services.recurrence_calendar import as_utc


class TutorCreate(BaseModel):
    id: str | None = Field(default=None, min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=255)


class TutorOut(BaseModel):
    id: str
    name: str
    email: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class UnavailabilityCreate(BaseModel):
    starts_at: datetime = Field(alias="startsAt")
    ends_at: datetime = Field(alias="endsAt")
    reason: str | None = Field(default=None, max_length=1000)

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def validate_window(self) -> "UnavailabilityCreate":
        if as_utc(self.ends_at) <= as_utc(self.starts_at):
            raise ValueError("endsAt must be after startsAt")
        return self


class UnavailabilityOut(BaseModel):
    id: str
    tutor_id: str
    starts_at: datetime
    ends_at: datetime
    reason: str | None = None

    model_config = {"from_attributes": True}

    @field_validator("starts_at", "ends_at")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TutorConflict(BaseModel):
    kind: Literal["session", "unavailability"]
    reference_id: str
    starts_at: datetime
    ends_at: datetime
    description: str


class TutorConflictReport(BaseModel):
    tutor_id: str
    has_conflict: bool
    conflicts: list[TutorConflict]
