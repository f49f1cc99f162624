from datetime import timedelta

from slotforge.core.exceptions import AppError
from slotforge.services import session_maintenance
from slotforge.services.class_schedule import deactivate_time_slot
from slotforge.services.session_maintenance import maintain_session_window

from conftest import FIXED_NOW, TODAY


def test_maintenance_tops_up_every_active_slot(db_session, make_slot, make_assignment):
    math = make_slot(class_id="class-1")
    make_slot(class_id="class-2", subject="Physics")
    retired = make_slot(class_id="class-3", subject="Latin")
    make_assignment(math, "alice")
    deactivate_time_slot(db_session, retired, now=FIXED_NOW)

    result = maintain_session_window(db_session, today=TODAY, now=FIXED_NOW)

    assert result.weeks_ahead == 4
    assert result.time_slots_processed == 2
    assert result.classes_processed == 2
    assert result.sessions_generated == 8
    assert result.assigned_sessions == 4
    assert result.unassigned_sessions == 4
    assert result.errors == []
    assert result.summary == "8 sessions generated across 2 classes"

    again = maintain_session_window(db_session, today=TODAY, now=FIXED_NOW)

    assert again.sessions_generated == 0
    assert again.summary == "0 sessions generated across 0 classes"


def test_maintenance_extends_the_window_as_time_passes(db_session, make_slot, make_assignment):
    slot = make_slot()
    make_assignment(slot, "alice")
    maintain_session_window(db_session, today=TODAY, now=FIXED_NOW, weeks_ahead=2)

    next_week = FIXED_NOW + timedelta(weeks=1)
    result = maintain_session_window(db_session, today=next_week.date(), now=next_week, weeks_ahead=2)

    assert result.sessions_generated == 1
    assert result.summary == "1 session generated across 1 class"


def test_one_failing_slot_does_not_stop_the_run(db_session, make_slot, monkeypatch):
    broken = make_slot(class_id="class-1")
    make_slot(class_id="class-2")
    original = session_maintenance.materialize_time_slot

    def flaky(db, slot, weeks_ahead, **kwargs):
        if slot.id == broken.id:
            raise AppError("corrupt assignment data", status_code=422)
        return original(db, slot, weeks_ahead, **kwargs)

    monkeypatch.setattr(session_maintenance, "materialize_time_slot", flaky)

    result = maintain_session_window(db_session, today=TODAY, now=FIXED_NOW)

    assert [(item.time_slot_id, item.error) for item in result.errors] == [(broken.id, "corrupt assignment data")]
    assert result.sessions_generated == 4
