from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, StrictInt, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from slotforge.core.exceptions import ValidationError
from slotforge.models.tutor_assignment import RecurrencePattern


class ManualConfig(BaseModel):
    pattern: Literal[RecurrencePattern.manual] = RecurrencePattern.manual

    model_config = {"extra": "forbid"}


class WeeklyConfig(BaseModel):
    pattern: Literal[RecurrencePattern.weekly] = RecurrencePattern.weekly
    # 1-based week numbers counted from the slot epoch.
    weeks: list[StrictInt] = Field(min_length=1, max_length=520)

    model_config = {"extra": "forbid"}

    @field_validator("weeks")
    @classmethod
    def normalize_weeks(cls, value: list[int]) -> list[int]:
        invalid = [week for week in value if week < 1]
        if invalid:
            raise ValueError(f"Week numbers must be >= 1, got {', '.join(str(item) for item in invalid)}")
        return sorted(set(value))


class ConsecutiveDaysConfig(BaseModel):
    pattern: Literal[RecurrencePattern.consecutive_days] = RecurrencePattern.consecutive_days
    consecutive_days: int = Field(alias="consecutiveDays", ge=1, le=520, strict=True)

    model_config = {"extra": "forbid", "populate_by_name": True}


class RoundRobinConfig(BaseModel):
    pattern: Literal[RecurrencePattern.round_robin] = RecurrencePattern.round_robin

    model_config = {"extra": "forbid"}


RecurrenceConfig = Annotated[
    Union[ManualConfig, WeeklyConfig, ConsecutiveDaysConfig, RoundRobinConfig],
    Field(discriminator="pattern"),
]

_recurrence_adapter: TypeAdapter[RecurrenceConfig] = TypeAdapter(RecurrenceConfig)


def parse_recurrence_config(pattern: RecurrencePattern | str, raw: dict[str, Any] | None) -> RecurrenceConfig:
    """Validate a pattern-specific payload into its typed config.

    Raises ``ValidationError`` for unknown patterns and malformed payloads so
    bad data is rejected before it is stored and never reaches resolution.
    """
    try:
        pattern_value = RecurrencePattern(pattern)
    except ValueError as exc:
        raise ValidationError(f"Unknown recurrence pattern: {pattern}") from exc

    payload = dict(raw or {})
    payload.pop("pattern", None)
    payload["pattern"] = pattern_value
    try:
        return _recurrence_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        errors = [
            {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
            for error in exc.errors()
        ]
        raise ValidationError(
            f"Invalid recurrence config for pattern {pattern_value.value}",
            details={"errors": errors},
        ) from exc


def dump_recurrence_config(config: RecurrenceConfig) -> dict[str, Any]:
    """Storage form of a config: the pattern lives in its own column."""
    return config.model_dump(by_alias=True, exclude={"pattern"})
