"""Quest period keys, computed in a fixed reference timezone.

Daily key: ``YYYY-MM-DD``. Weekly key: ISO-8601 week ``YYYY-Www`` (Monday
start, week 1 contains the year's first Thursday), via ``%G-W%V``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DAILY = "daily"
WEEKLY = "weekly"
QUEST_TYPES: tuple[str, ...] = (DAILY, WEEKLY)


def local_now(tz_name: str, now: datetime | None = None) -> datetime:
    """Convert ``now`` (default: current UTC time) into the reference timezone."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name))


def get_date_key(tz_name: str, now: datetime | None = None) -> str:
    """Get the calendar-date key e.g. '2026-03-01'."""
    return local_now(tz_name, now).date().isoformat()


def get_week_key(tz_name: str, now: datetime | None = None) -> str:
    """Get ISO week string e.g. '2026-W09'. Uses %G-W%V (ISO year + ISO week)."""
    return local_now(tz_name, now).strftime("%G-W%V")


def period_key_for(quest_type: str, tz_name: str, now: datetime | None = None) -> str:
    """Key of the period that is active ``now`` for the given quest type."""
    if quest_type == DAILY:
        return get_date_key(tz_name, now)
    if quest_type == WEEKLY:
        return get_week_key(tz_name, now)
    msg = f"Unknown quest type: {quest_type!r}"
    raise ValueError(msg)


def current_period_keys(tz_name: str, now: datetime | None = None) -> dict[str, str]:
    """Map each quest type to its active period key."""
    return {quest_type: period_key_for(quest_type, tz_name, now) for quest_type in QUEST_TYPES}
