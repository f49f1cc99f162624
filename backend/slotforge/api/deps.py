from collections.abc import Generator
from datetime import date, datetime, timezone

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from slotforge.core.config import get_settings
from slotforge.db.session import SessionLocal
from slotforge.services.recurrence_calendar import schedule_zone


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_today(now: datetime = Depends(get_now)) -> date:
    """Calendar date of ``now`` in the schedule time zone."""
    return now.astimezone(schedule_zone(get_settings().schedule_timezone)).date()


def get_actor_id(x_actor_id: str | None = Header(default=None, max_length=36)) -> str | None:
    if x_actor_id is None:
        return None
    return x_actor_id.strip() or None


def resolve_weeks_ahead(requested: int | None) -> int:
    return requested if requested is not None else get_settings().default_weeks_ahead
