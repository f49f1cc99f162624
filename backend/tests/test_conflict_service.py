from datetime import datetime, timezone

from slotforge.schemas.tutor import UnavailabilityCreate
from slotforge.services.class_schedule import add_tutor_unavailability, deactivate_time_slot
from slotforge.services.conflict_service import ConflictChecker
from slotforge.services.session_materializer import materialize_time_slot

from conftest import FIXED_NOW, TODAY


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=timezone.utc)


def test_existing_session_blocks_overlapping_window(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    result = materialize_time_slot(db_session, slot, 1, today=TODAY, now=FIXED_NOW)
    checker = ConflictChecker(db_session)

    conflicts = checker.find_conflicts("alice", _at(20, 16, 30), _at(20, 17, 30))

    assert [(item.kind, item.reference_id) for item in conflicts] == [("session", result.created[0].id)]
    assert checker.has_conflict("bob", _at(20, 16, 30), _at(20, 17, 30)) is False


def test_half_open_windows_do_not_conflict(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    materialize_time_slot(db_session, slot, 1, today=TODAY, now=FIXED_NOW)
    checker = ConflictChecker(db_session)

    assert checker.has_conflict("alice", _at(20, 17), _at(20, 18)) is False
    assert checker.has_conflict("alice", _at(20, 15), _at(20, 16)) is False


def test_excluded_session_does_not_conflict_with_itself(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    session = materialize_time_slot(db_session, slot, 1, today=TODAY, now=FIXED_NOW).created[0]

    report = ConflictChecker(db_session).report(
        "alice",
        session.scheduled_start,
        session.scheduled_end,
        exclude_session_id=session.id,
    )

    assert report.has_conflict is False
    assert report.conflicts == []


def test_cancelled_sessions_do_not_block(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    materialize_time_slot(db_session, slot, 1, today=TODAY, now=FIXED_NOW)
    deactivate_time_slot(db_session, slot, now=FIXED_NOW)

    assert ConflictChecker(db_session).has_conflict("alice", _at(20, 16), _at(20, 17)) is False


def test_unavailability_is_reported(db_session, make_tutor):
    tutor = make_tutor("alice")
    add_tutor_unavailability(
        db_session,
        tutor,
        UnavailabilityCreate(startsAt=_at(22, 8), endsAt=_at(22, 12), reason="Conference"),
    )

    report = ConflictChecker(db_session).report("alice", _at(22, 11), _at(22, 13))

    assert report.has_conflict is True
    assert report.conflicts[0].kind == "unavailability"
    assert report.conflicts[0].description == "Conference"
