"""Per-period quest progress: counting, completion, claiming and projection.

Each objective moves Open -> Completed-Unclaimed -> Claimed and never back.
Daily and weekly progress live in separate records, each keyed by its own
period key.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.config import get_settings
from questline.db.models import Quest, QuestProgress
from questline.progression.exceptions import (
    AlreadyClaimed,
    InvalidObjective,
    NotCompleted,
    NotFoundError,
    ObjectiveNotFound,
)
from questline.progression.periods import QUEST_TYPES, period_key_for
from questline.progression.quest_catalog import find_objective, get_active_catalog
from questline.progression.quest_migrator import new_objective_progress, reconcile_record

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    objective_id: str
    quest_type: str
    xp_reward: int


def _timestamp(now: datetime) -> str:
    return now.astimezone(timezone.utc).isoformat()


def is_complete(entry: dict[str, Any]) -> bool:
    """Whether an objective's counter has reached its target."""
    if entry.get("message_target", 0) > 0:
        return entry.get("current_messages", 0) >= entry["message_target"]
    if entry.get("success_message_target", 0) > 0:
        return entry.get("current_success_messages", 0) >= entry["success_message_target"]
    return False


def detect_completions(objectives: list[dict[str, Any]], now: datetime | None = None) -> list[str]:
    """Mark every Open objective that reached its target. Returns the newly completed ids."""
    if now is None:
        now = datetime.now(timezone.utc)
    completed: list[str] = []
    for entry in objectives:
        if not entry.get("completed") and is_complete(entry):
            entry["completed"] = True
            entry["completed_at"] = _timestamp(now)
            completed.append(entry["objective_id"])
    return completed


async def get_or_create_record(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    quest: Quest,
    period_key: str,
) -> QuestProgress:
    """Load the user's record for a quest period, seeding it from the catalog."""
    result = await db.execute(
        select(QuestProgress).where(
            QuestProgress.company_id == company_id,
            QuestProgress.user_id == user_id,
            QuestProgress.quest_type == quest.quest_type,
            QuestProgress.period_key == period_key,
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = QuestProgress(
            company_id=company_id,
            user_id=user_id,
            quest_type=quest.quest_type,
            period_key=period_key,
            objectives=[new_objective_progress(definition) for definition in quest.objectives],
            seen=True,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(record)
        await db.flush()
    return record


def _sync_record(record: QuestProgress, quest: Quest, now: datetime) -> list[str]:
    """Reconcile a record with its quest and detect completions."""
    reconcile_record(record, quest, now)
    objectives = copy.deepcopy(record.objectives)
    completed = detect_completions(objectives, now)
    if completed:
        record.objectives = objectives
        record.seen = False
        record.updated_at = now
    return completed


async def _current_records(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    now: datetime,
) -> list[tuple[Quest, QuestProgress]]:
    tz_name = get_settings().quest_timezone
    catalog = await get_active_catalog(db, company_id)
    records = []
    for quest_type in QUEST_TYPES:
        quest = catalog.get(quest_type)
        if quest is None:
            continue
        period_key = period_key_for(quest_type, tz_name, now)
        record = await get_or_create_record(db, company_id, user_id, quest, period_key)
        records.append((quest, record))
    return records


async def record_activity(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    is_success_activity: bool,
    now: datetime | None = None,
) -> list[str]:
    """Count one activity event against every active quest.

    Message objectives count every event; success objectives only count
    success events. Completed objectives stop counting. Returns the ids of
    objectives this event completed.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    newly_completed: list[str] = []
    for quest, record in await _current_records(db, company_id, user_id, now):
        reconcile_record(record, quest, now)
        objectives = copy.deepcopy(record.objectives)

        for entry in objectives:
            if entry.get("completed"):
                continue
            if entry.get("message_target", 0) > 0:
                entry["current_messages"] = entry.get("current_messages", 0) + 1
            elif entry.get("success_message_target", 0) > 0 and is_success_activity:
                entry["current_success_messages"] = entry.get("current_success_messages", 0) + 1

        completed = detect_completions(objectives, now)
        if completed:
            record.seen = False
            newly_completed.extend(completed)
        record.objectives = objectives
        record.updated_at = now

    await db.flush()
    if newly_completed:
        logger.info("User %s/%s completed %s", company_id, user_id, ", ".join(newly_completed))
    return newly_completed


async def claim_objective(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    objective_id: str,
    now: datetime | None = None,
) -> ClaimResult:
    """Move a Completed-Unclaimed objective to Claimed.

    Raises:
        InvalidObjective: empty objective id.
        ObjectiveNotFound: id not in the active catalog.
        NotCompleted: objective still Open.
        AlreadyClaimed: objective already Claimed.
    """
    if not objective_id or not objective_id.strip():
        msg = "Objective id is required"
        raise InvalidObjective(msg)
    if now is None:
        now = datetime.now(timezone.utc)

    catalog = await get_active_catalog(db, company_id)
    found = find_objective(catalog, objective_id)
    if found is None:
        msg = f"Objective {objective_id} not found"
        raise ObjectiveNotFound(msg, objective_id=objective_id)
    quest, _definition = found

    period_key = period_key_for(quest.quest_type, get_settings().quest_timezone, now)
    record = await get_or_create_record(db, company_id, user_id, quest, period_key)
    _sync_record(record, quest, now)

    objectives = copy.deepcopy(record.objectives)
    entry = next(item for item in objectives if item["objective_id"] == objective_id)
    if not entry.get("completed"):
        msg = f"Objective {objective_id} is not completed"
        raise NotCompleted(msg, objective_id=objective_id)
    if entry.get("claimed"):
        msg = f"Objective {objective_id} already claimed"
        raise AlreadyClaimed(msg, objective_id=objective_id)

    entry["claimed"] = True
    entry["claimed_at"] = _timestamp(now)
    record.objectives = objectives
    record.updated_at = now
    await db.flush()

    return ClaimResult(
        objective_id=objective_id,
        quest_type=quest.quest_type,
        xp_reward=entry["xp_reward"],
    )


def project_objectives(quest: Quest, record: QuestProgress) -> list[dict[str, Any]]:
    """Display view of a record's objectives, in catalog order."""
    by_id = {entry["objective_id"]: entry for entry in record.objectives}
    views = []
    for definition in sorted(quest.objectives, key=lambda item: item["order"]):
        entry = by_id.get(definition["id"]) or new_objective_progress(definition)
        if entry["message_target"] > 0:
            target, count = entry["message_target"], entry.get("current_messages", 0)
        else:
            target, count = entry["success_message_target"], entry.get("current_success_messages", 0)
        views.append({
            "id": definition["id"],
            "title": definition.get("title", ""),
            "description": definition.get("description", ""),
            "progress": min(count, target),
            "target": target,
            "completed": bool(entry.get("completed")),
            "claimed": bool(entry.get("claimed")),
            "xp": entry["xp_reward"],
            "order": entry["order"],
        })
    return views


async def get_progress(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    now: datetime | None = None,
) -> dict[str, dict[str, Any]]:
    """Current daily and weekly progress for display, keyed by quest type."""
    if now is None:
        now = datetime.now(timezone.utc)

    progress: dict[str, dict[str, Any]] = {}
    for quest, record in await _current_records(db, company_id, user_id, now):
        _sync_record(record, quest, now)
        objectives = project_objectives(quest, record)
        progress[quest.quest_type] = {
            "quest_id": quest.quest_id,
            "title": quest.title,
            "description": quest.description,
            "period_key": record.period_key,
            "objectives": objectives,
            "unread": sum(1 for view in objectives if view["completed"] and not view["claimed"]),
            "seen": record.seen,
        }

    await db.flush()
    return progress


async def mark_quest_seen(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    quest_type: str,
    now: datetime | None = None,
) -> None:
    """Set the seen flag on the user's current record for a quest type."""
    if quest_type not in QUEST_TYPES:
        msg = f"Unknown quest type: {quest_type}"
        raise ValueError(msg)
    if now is None:
        now = datetime.now(timezone.utc)

    catalog = await get_active_catalog(db, company_id)
    quest = catalog.get(quest_type)
    if quest is None:
        msg = f"No active {quest_type} quest"
        raise NotFoundError(msg, quest_type=quest_type)

    period_key = period_key_for(quest_type, get_settings().quest_timezone, now)
    record = await get_or_create_record(db, company_id, user_id, quest, period_key)
    if not record.seen:
        record.seen = True
        record.updated_at = now
        await db.flush()
