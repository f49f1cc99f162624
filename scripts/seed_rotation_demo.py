"""Seed demo tutors, a class timetable and rotations, then materialize a month.

Run:
  PYTHONPATH=backend python scripts/seed_rotation_demo.py
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

from slotforge.core.config import get_settings
from slotforge.db.bootstrap import ensure_runtime_schema_compatibility
from slotforge.db.session import SessionLocal
from slotforge.models.tutor import Tutor
from slotforge.models.tutor_assignment import AssignmentStatus, RecurrencePattern
from slotforge.schemas.assignment import AssignmentCreate
from slotforge.schemas.time_slot import TimeSlotCreate
from slotforge.schemas.tutor import TutorCreate
from slotforge.services.class_schedule import (
    create_assignment,
    create_time_slot,
    list_time_slots,
    register_tutor,
    update_assignment_status,
)
from slotforge.services.preview import build_time_slot_preview
from slotforge.services.recurrence_calendar import schedule_zone
from slotforge.services.session_materializer import materialize_class

CLASS_ID = os.getenv("DEMO_CLASS_ID", "demo-class-a")
ACTOR_ID = "seed-script"

DEMO_TUTORS = [
    {"id": "tutor-amelie", "name": "Amélie Laurent", "email": "amelie.demo@example.com"},
    {"id": "tutor-bruno", "name": "Bruno Petit", "email": "bruno.demo@example.com"},
    {"id": "tutor-chloe", "name": "Chloé Bernard", "email": "chloe.demo@example.com"},
]

# (subject, day_of_week, start, end, rotation)
DEMO_SLOTS = [
    ("Mathematics", 1, "14:00", "15:00", [
        ("tutor-amelie", RecurrencePattern.consecutive_days, {"consecutiveDays": 2}),
        ("tutor-bruno", RecurrencePattern.round_robin, {}),
    ]),
    ("Physics", 3, "10:00", "11:30", [
        ("tutor-amelie", RecurrencePattern.round_robin, {}),
        ("tutor-bruno", RecurrencePattern.round_robin, {}),
        ("tutor-chloe", RecurrencePattern.round_robin, {}),
    ]),
    ("French", 5, "16:00", "17:00", [
        ("tutor-chloe", RecurrencePattern.weekly, {"weeks": [1, 3]}),
    ]),
]


def _upsert_tutors(db) -> None:
    for item in DEMO_TUTORS:
        if db.get(Tutor, item["id"]) is None:
            register_tutor(db, TutorCreate(**item))


def main() -> None:
    ensure_runtime_schema_compatibility()
    now = datetime.now(timezone.utc)
    today = now.astimezone(schedule_zone(get_settings().schedule_timezone)).date()
    db = SessionLocal()
    try:
        _upsert_tutors(db)
        if list_time_slots(db, CLASS_ID):
            print(f"Class {CLASS_ID} already has time slots; only materializing.")
        else:
            for subject, day, start, end, rotation in DEMO_SLOTS:
                slot = create_time_slot(
                    db,
                    CLASS_ID,
                    TimeSlotCreate(subject=subject, dayOfWeek=day, startTime=start, endTime=end),
                    today=today,
                    actor_id=ACTOR_ID,
                )
                for tutor_id, pattern, config in rotation:
                    assignment = create_assignment(
                        db,
                        slot,
                        AssignmentCreate(tutorId=tutor_id, recurrencePattern=pattern, recurrenceConfig=config),
                        today=today,
                        actor_id=ACTOR_ID,
                    )
                    update_assignment_status(db, assignment, AssignmentStatus.accepted, now=now)

        result = materialize_class(db, CLASS_ID, 4, today=today, now=now)
        db.commit()

        print(result.summary)
        for slot in list_time_slots(db, CLASS_ID):
            print(f"\n{slot.subject} ({slot.start_time}-{slot.end_time})")
            for entry in build_time_slot_preview(db, slot, 4, today=today, now=now):
                print(f"  {entry.session_date.isoformat()}  {entry.tutor_name}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
