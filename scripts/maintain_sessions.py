"""Top up the rolling session window for every active time slot.

Meant for a daily cron job:
  PYTHONPATH=backend python scripts/maintain_sessions.py
"""

import logging
from datetime import datetime, timezone

from slotforge.core.config import get_settings
from slotforge.db.session import SessionLocal
from slotforge.services.audit import log_activity
from slotforge.services.recurrence_calendar import schedule_zone
from slotforge.services.session_maintenance import maintain_session_window

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

now = datetime.now(timezone.utc)
db = SessionLocal()
try:
    result = maintain_session_window(
        db,
        today=now.astimezone(schedule_zone(settings.schedule_timezone)).date(),
        now=now,
    )
    log_activity(
        db,
        actor_id=None,
        action="sessions.maintenance",
        details={"generated": result.sessions_generated, "errors": len(result.errors)},
    )
    db.commit()
    print(result.summary)
    for error in result.errors:
        print(f"  ! {error.class_id}/{error.time_slot_id}: {error.error}")
finally:
    db.close()
