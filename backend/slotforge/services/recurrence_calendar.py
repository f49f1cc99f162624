from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def day_of_week(value: date) -> int:
    """Slot day index of a date: 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def day_name(index: int) -> str:
    return DAY_NAMES[index] if 0 <= index < len(DAY_NAMES) else "Unknown"


def next_occurrence_on_or_after(reference: date, target_day: int) -> date:
    return reference + timedelta(days=(target_day - day_of_week(reference)) % 7)


def week_start(value: date) -> date:
    """Monday of the week containing ``value``."""
    return value - timedelta(days=value.weekday())


def week_offset(epoch: date, occurrence: date) -> int:
    return (occurrence - epoch).days // 7


def occurrence_dates(target_day: int, weeks_ahead: int, today: date) -> list[date]:
    first = next_occurrence_on_or_after(today, target_day)
    return [first + timedelta(weeks=week) for week in range(weeks_ahead)]


@lru_cache
def schedule_zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def combine_local(value: date, hhmm: str, zone: tzinfo) -> datetime:
    """Wall-clock ``HH:MM`` on ``value`` in ``zone``, returned in UTC."""
    minutes = parse_time_to_minutes(hhmm)
    local = datetime.combine(value, time(minutes // 60, minutes % 60), tzinfo=zone)
    return local.astimezone(timezone.utc)


def occurrence_window(slot, occurrence: date, zone: tzinfo) -> tuple[datetime, datetime]:
    return combine_local(occurrence, slot.start_time, zone), combine_local(occurrence, slot.end_time, zone)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def past_cutoff(today: date, now: datetime | None, zone: tzinfo) -> datetime:
    """Occurrences starting before this instant are in the past.

    Without a clock reading the cut-off is midnight of ``today``.
    """
    if now is not None:
        return as_utc(now)
    return combine_local(today, "00:00", zone)
