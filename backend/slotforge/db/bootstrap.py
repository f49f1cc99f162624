from __future__ import annotations

import logging

from sqlalchemy import inspect

from slotforge.core.config import get_settings
from slotforge.db.base import Base
from slotforge.db.session import engine
import slotforge.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "time_slots": {"id", "class_id", "day_of_week", "start_time", "end_time", "epoch_date", "is_active"},
    "slot_cancellations": {"id", "time_slot_id", "week_start"},
    "tutors": {"id", "name", "is_active"},
    "tutor_unavailability": {"id", "tutor_id", "starts_at", "ends_at"},
    "tutor_assignments": {
        "id",
        "time_slot_id",
        "tutor_id",
        "status",
        "recurrence_pattern",
        "recurrence_config",
        "start_date",
        "end_date",
        "is_active",
        "created_at",
    },
    "tutoring_sessions": {
        "id",
        "time_slot_id",
        "class_id",
        "scheduled_start",
        "scheduled_end",
        "tutor_id",
        "status",
        "cancellation_reason",
    },
}


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility() -> None:
    settings = get_settings()
    try:
        if settings.auto_create_schema:
            Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
