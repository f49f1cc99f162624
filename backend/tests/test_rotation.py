from collections import Counter
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

from slotforge.models.tutor_assignment import AssignmentStatus, RecurrencePattern
from slotforge.schemas.recurrence import parse_recurrence_config
from slotforge.services.rotation import AssignmentSnapshot, resolve, resolve_tutor

EPOCH = date(2026, 10, 20)
SLOT = SimpleNamespace(epoch_date=EPOCH)
BASE_CREATED = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def _week(offset: int) -> date:
    return EPOCH + timedelta(weeks=offset)


def _snapshot(
    assignment_id: str,
    tutor_id: str,
    pattern: RecurrencePattern,
    config: dict | None = None,
    *,
    order: int = 0,
    start_date: date = EPOCH,
    end_date: date | None = None,
    status: AssignmentStatus = AssignmentStatus.accepted,
    is_active: bool = True,
) -> AssignmentSnapshot:
    return AssignmentSnapshot(
        id=assignment_id,
        tutor_id=tutor_id,
        pattern=pattern,
        config=parse_recurrence_config(pattern, config or {}),
        start_date=start_date,
        end_date=end_date,
        created_at=BASE_CREATED + timedelta(minutes=order),
        status=status,
        is_active=is_active,
    )


def _owners(assignments, weeks: int = 6) -> list[str | None]:
    return [resolve_tutor(SLOT, _week(offset), assignments) for offset in range(weeks)]


def test_round_robin_cycles_in_creation_order():
    assignments = [
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=0),
        _snapshot("a2", "bob", RecurrencePattern.round_robin, order=1),
        _snapshot("a3", "carol", RecurrencePattern.round_robin, order=2),
    ]

    owners = _owners(assignments)

    assert owners == ["alice", "bob", "carol", "alice", "bob", "carol"]
    assert Counter(owners) == {"alice": 2, "bob": 2, "carol": 2}


def test_round_robin_order_ignores_input_order():
    assignments = [
        _snapshot("a3", "carol", RecurrencePattern.round_robin, order=2),
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=0),
        _snapshot("a2", "bob", RecurrencePattern.round_robin, order=1),
    ]

    assert _owners(assignments, weeks=3) == ["alice", "bob", "carol"]


def test_weekly_claims_take_priority_over_round_robin():
    assignments = [
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=0),
        _snapshot("a2", "bob", RecurrencePattern.round_robin, order=1),
        _snapshot("w1", "dave", RecurrencePattern.weekly, {"weeks": [2, 4]}, order=2),
    ]

    # Round robin keeps counting weeks from the epoch even when a week is taken.
    assert _owners(assignments) == ["alice", "dave", "alice", "dave", "alice", "bob"]


def test_manual_assignment_beats_every_other_pattern():
    assignments = [
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=0),
        _snapshot("w1", "dave", RecurrencePattern.weekly, {"weeks": [3]}, order=1),
        _snapshot("m1", "erin", RecurrencePattern.manual, order=2, start_date=_week(2), end_date=_week(2)),
    ]

    resolution = resolve(SLOT, _week(2), assignments)

    assert resolution.tutor_id == "erin"
    assert resolution.pattern == RecurrencePattern.manual
    assert resolution.assignment_id == "m1"
    assert _owners(assignments, weeks=4) == ["alice", "alice", "erin", "alice"]


def test_consecutive_block_then_round_robin_fallthrough():
    assignments = [
        _snapshot("c1", "alice", RecurrencePattern.consecutive_days, {"consecutiveDays": 2}, order=0),
        _snapshot("r1", "bob", RecurrencePattern.round_robin, order=1),
    ]

    assert _owners(assignments, weeks=4) == ["alice", "alice", "bob", "bob"]


def test_consecutive_run_end_without_other_cover_is_unassigned():
    assignments = [
        _snapshot("c1", "alice", RecurrencePattern.consecutive_days, {"consecutiveDays": 2}, order=0),
    ]

    assert _owners(assignments, weeks=4) == ["alice", "alice", None, None]


def test_consecutive_block_starts_at_its_start_date():
    assignments = [
        _snapshot(
            "c1",
            "alice",
            RecurrencePattern.consecutive_days,
            {"consecutiveDays": 1},
            start_date=_week(2),
        ),
    ]

    assert _owners(assignments, weeks=4) == [None, None, "alice", None]


def test_only_accepted_active_assignments_are_considered():
    assignments = [
        _snapshot("p1", "pat", RecurrencePattern.round_robin, status=AssignmentStatus.pending, order=0),
        _snapshot("d1", "dan", RecurrencePattern.round_robin, status=AssignmentStatus.declined, order=1),
        _snapshot("x1", "xena", RecurrencePattern.round_robin, is_active=False, order=2),
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=3),
    ]

    assert set(_owners(assignments)) == {"alice"}


def test_validity_window_limits_round_robin_participation():
    assignments = [
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=0, end_date=_week(1)),
        _snapshot("a2", "bob", RecurrencePattern.round_robin, order=1),
    ]

    assert _owners(assignments, weeks=4) == ["alice", "bob", "bob", "bob"]


def test_occurrences_before_epoch_only_resolve_manual_assignments():
    before = EPOCH - timedelta(weeks=1)
    rotation_only = [_snapshot("a1", "alice", RecurrencePattern.round_robin, start_date=before)]
    with_manual = rotation_only + [
        _snapshot("m1", "erin", RecurrencePattern.manual, order=1, start_date=before),
    ]

    assert resolve(SLOT, before, rotation_only).tutor_id is None
    assert resolve(SLOT, before, rotation_only).week_offset == -1
    assert resolve(SLOT, before, with_manual).tutor_id == "erin"


def test_no_assignments_resolves_unassigned():
    resolution = resolve(SLOT, _week(0), [])

    assert resolution.is_assigned is False
    assert resolution.pattern is None


def test_competing_weekly_claims_pick_earliest_and_report_ambiguity():
    assignments = [
        _snapshot("w2", "bob", RecurrencePattern.weekly, {"weeks": [1]}, order=1),
        _snapshot("w1", "alice", RecurrencePattern.weekly, {"weeks": [1, 2]}, order=0),
    ]

    first = resolve(SLOT, _week(0), assignments)
    second = resolve(SLOT, _week(1), assignments)

    assert first.tutor_id == "alice"
    assert len(first.ambiguities) == 1
    assert first.ambiguities[0].winner_assignment_id == "w1"
    assert first.ambiguities[0].assignment_ids == ("w1", "w2")
    assert second.tutor_id == "alice"
    assert second.ambiguities == ()


def test_resolution_is_deterministic():
    assignments = [
        _snapshot("a1", "alice", RecurrencePattern.round_robin, order=0),
        _snapshot("a2", "bob", RecurrencePattern.round_robin, order=1),
        _snapshot("w1", "dave", RecurrencePattern.weekly, {"weeks": [3]}, order=2),
    ]

    assert [resolve(SLOT, _week(w), assignments) for w in range(8)] == [
        resolve(SLOT, _week(w), list(reversed(assignments))) for w in range(8)
    ]
