"""Resolve which tutor owns a given occurrence of a weekly time slot.

Resolution is a pure function of the slot, the occurrence date and a snapshot
of assignments: it performs no I/O and never reads the clock, so previews and
materialization always agree for the same inputs.

Priority between pattern kinds is fixed:
MANUAL > WEEKLY > CONSECUTIVE_DAYS > ROUND_ROBIN.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from slotforge.models.tutor_assignment import AssignmentStatus, RecurrencePattern, TutorAssignment
from slotforge.schemas.recurrence import (
    ConsecutiveDaysConfig,
    RecurrenceConfig,
    WeeklyConfig,
    parse_recurrence_config,
)
from slotforge.services.recurrence_calendar import as_utc, week_offset


@dataclass(frozen=True)
class AssignmentSnapshot:
    id: str
    tutor_id: str
    pattern: RecurrencePattern
    config: RecurrenceConfig
    start_date: date
    end_date: date | None
    created_at: datetime
    status: AssignmentStatus = AssignmentStatus.accepted
    is_active: bool = True

    @classmethod
    def from_model(cls, assignment: TutorAssignment) -> "AssignmentSnapshot":
        return cls(
            id=assignment.id,
            tutor_id=assignment.tutor_id,
            pattern=assignment.recurrence_pattern,
            config=parse_recurrence_config(assignment.recurrence_pattern, assignment.recurrence_config),
            start_date=assignment.start_date,
            end_date=assignment.end_date,
            created_at=as_utc(assignment.created_at),
            status=assignment.status,
            is_active=assignment.is_active,
        )

    @property
    def order_key(self) -> tuple[datetime, str]:
        return self.created_at, self.id

    def covers(self, occurrence: date) -> bool:
        if occurrence < self.start_date:
            return False
        return self.end_date is None or occurrence <= self.end_date


@dataclass(frozen=True)
class AmbiguousClaim:
    """Two or more assignments of one priority class claim the same occurrence."""

    pattern: RecurrencePattern
    occurrence_date: date
    winner_assignment_id: str
    assignment_ids: tuple[str, ...]


@dataclass(frozen=True)
class Resolution:
    occurrence_date: date
    week_offset: int
    tutor_id: str | None = None
    assignment_id: str | None = None
    pattern: RecurrencePattern | None = None
    ambiguities: tuple[AmbiguousClaim, ...] = field(default_factory=tuple)

    @property
    def is_assigned(self) -> bool:
        return self.tutor_id is not None


def _eligible(assignments: Iterable[AssignmentSnapshot], occurrence: date) -> list[AssignmentSnapshot]:
    eligible = [
        item
        for item in assignments
        if item.status == AssignmentStatus.accepted and item.is_active and item.covers(occurrence)
    ]
    eligible.sort(key=lambda item: item.order_key)
    return eligible


def _weekly_claims(item: AssignmentSnapshot, offset: int) -> bool:
    config = item.config
    return isinstance(config, WeeklyConfig) and (offset + 1) in config.weeks


def _consecutive_claims(item: AssignmentSnapshot, occurrence: date) -> bool:
    config = item.config
    if not isinstance(config, ConsecutiveDaysConfig):
        return False
    run_end = item.start_date + timedelta(weeks=config.consecutive_days)
    return item.start_date <= occurrence < run_end


def _pick(
    pattern: RecurrencePattern,
    claims: Sequence[AssignmentSnapshot],
    occurrence: date,
    offset: int,
) -> Resolution:
    winner = claims[0]
    ambiguities: tuple[AmbiguousClaim, ...] = ()
    if len(claims) > 1:
        ambiguities = (
            AmbiguousClaim(
                pattern=pattern,
                occurrence_date=occurrence,
                winner_assignment_id=winner.id,
                assignment_ids=tuple(item.id for item in claims),
            ),
        )
    return Resolution(
        occurrence_date=occurrence,
        week_offset=offset,
        tutor_id=winner.tutor_id,
        assignment_id=winner.id,
        pattern=pattern,
        ambiguities=ambiguities,
    )


def resolve(slot, occurrence_date: date, assignments: Iterable[AssignmentSnapshot]) -> Resolution:
    """Resolve the owner of ``occurrence_date`` for ``slot``.

    ``slot`` only needs an ``epoch_date``. ``assignments`` may contain
    assignments in any state; only ACCEPTED, active ones whose validity
    window covers the date are considered.
    """
    offset = week_offset(slot.epoch_date, occurrence_date)
    candidates = _eligible(assignments, occurrence_date)
    if not candidates:
        return Resolution(occurrence_date=occurrence_date, week_offset=offset)

    manual = [item for item in candidates if item.pattern == RecurrencePattern.manual]
    if manual:
        return _pick(RecurrencePattern.manual, manual, occurrence_date, offset)

    if offset < 0:
        # Before the slot's first occurrence there is no rotation history.
        return Resolution(occurrence_date=occurrence_date, week_offset=offset)

    weekly = [item for item in candidates if _weekly_claims(item, offset)]
    if weekly:
        return _pick(RecurrencePattern.weekly, weekly, occurrence_date, offset)

    consecutive = [item for item in candidates if _consecutive_claims(item, occurrence_date)]
    if consecutive:
        return _pick(RecurrencePattern.consecutive_days, consecutive, occurrence_date, offset)

    participants = [item for item in candidates if item.pattern == RecurrencePattern.round_robin]
    if participants:
        owner = participants[offset % len(participants)]
        return Resolution(
            occurrence_date=occurrence_date,
            week_offset=offset,
            tutor_id=owner.tutor_id,
            assignment_id=owner.id,
            pattern=RecurrencePattern.round_robin,
        )

    return Resolution(occurrence_date=occurrence_date, week_offset=offset)


def resolve_tutor(slot, occurrence_date: date, assignments: Iterable[AssignmentSnapshot]) -> str | None:
    return resolve(slot, occurrence_date, assignments).tutor_id
