from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from slotforge.services.recurrence_calendar import TIME_PATTERN, parse_time_to_minutes


class TimeSlotCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    day_of_week: int = Field(alias="dayOfWeek", ge=0, le=6)
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    # First occurrence is the first matching weekday on or after this date.
    starts_on: date | None = Field(default=None, alias="startsOn")

    model_config = {"populate_by_name": True}

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        value = value.strip()
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "TimeSlotCreate":
        if parse_time_to_minutes(self.start_time) >= parse_time_to_minutes(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class TimeSlotOut(BaseModel):
    id: str
    class_id: str
    subject: str
    day_of_week: int
    start_time: str
    end_time: str
    epoch_date: date
    is_active: bool
    created_at: datetime | None = None
    deactivated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TimeSlotDeactivate(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class TimeSlotDeactivateOut(BaseModel):
    time_slot: TimeSlotOut
    cancelled_sessions: int


class SlotCancellationCreate(BaseModel):
    week_start: date = Field(alias="weekStart")
    reason: str | None = Field(default=None, max_length=1000)

    model_config = {"populate_by_name": True}


class SlotCancellationOut(BaseModel):
    id: str
    time_slot_id: str
    week_start: date
    reason: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    cancelled_sessions: int = 0

    model_config = {"from_attributes": True}


class TimeSlotDetailOut(TimeSlotOut):
    cancellations: list[SlotCancellationOut] = Field(default_factory=list)
