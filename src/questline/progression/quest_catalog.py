"""Quest catalog: per-tenant quest definitions and their default seed."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.db.models import Quest
from questline.progression.exceptions import InvalidObjective
from questline.progression.periods import DAILY, QUEST_TYPES, WEEKLY

if TYPE_CHECKING:
    from questline.database import Database
    from questline.progression.quest_migrator import MigrationReport

logger = logging.getLogger(__name__)

QUEST_FIELDS = ("title", "description", "is_active")
OBJECTIVE_FIELDS = ("title", "description", "message_target", "success_message_target", "xp_reward", "order")

DEFAULT_QUESTS: list[dict[str, Any]] = [
    {
        "quest_id": "daily_quest",
        "quest_type": DAILY,
        "title": "Daily Quest",
        "description": "Complete daily objectives in order",
        "objectives": [
            {
                "id": "daily_success1",
                "title": "Send 1 Success Message",
                "description": "Send 1 message in a success channel",
                "message_target": 0,
                "success_message_target": 1,
                "xp_reward": 10,
                "order": 1,
            },
            {
                "id": "daily_send10",
                "title": "Send 10 Messages",
                "description": "Send 10 messages in any channel",
                "message_target": 10,
                "success_message_target": 0,
                "xp_reward": 15,
                "order": 2,
            },
        ],
    },
    {
        "quest_id": "weekly_quest",
        "quest_type": WEEKLY,
        "title": "Weekly Quest",
        "description": "Complete weekly objectives in order",
        "objectives": [
            {
                "id": "weekly_send100",
                "title": "Send 100 Messages",
                "description": "Send 100 messages in any channel",
                "message_target": 100,
                "success_message_target": 0,
                "xp_reward": 15,
                "order": 1,
            },
            {
                "id": "weekly_success10",
                "title": "Send 10 Success Messages",
                "description": "Send 10 messages in success channels",
                "message_target": 0,
                "success_message_target": 10,
                "xp_reward": 50,
                "order": 2,
            },
        ],
    },
]


def validate_objective(objective: dict[str, Any]) -> None:
    """Raise InvalidObjective unless the definition tracks exactly one counter."""
    objective_id = objective.get("id")
    if not isinstance(objective_id, str) or not objective_id.strip():
        msg = "Objective id must be a non-empty string"
        raise InvalidObjective(msg)

    for key in ("message_target", "success_message_target", "xp_reward", "order"):
        value = objective.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            msg = f"Objective {objective_id}: {key} must be a non-negative integer"
            raise InvalidObjective(msg, objective_id=objective_id)

    if (objective["message_target"] > 0) == (objective["success_message_target"] > 0):
        msg = f"Objective {objective_id}: exactly one of message_target/success_message_target must be nonzero"
        raise InvalidObjective(msg, objective_id=objective_id)


async def ensure_seeded(db: AsyncSession, company_id: str) -> bool:
    """Create the default daily and weekly quests if the tenant has none.

    Returns True if quests were created. Never touches existing definitions.
    """
    result = await db.execute(select(Quest.id).where(Quest.company_id == company_id).limit(1))
    if result.scalar_one_or_none() is not None:
        return False

    now = datetime.now(timezone.utc)
    for seed in DEFAULT_QUESTS:
        db.add(Quest(
            company_id=company_id,
            quest_id=seed["quest_id"],
            quest_type=seed["quest_type"],
            title=seed["title"],
            description=seed["description"],
            objectives=copy.deepcopy(seed["objectives"]),
            is_active=True,
            updated_at=now,
        ))
    await db.flush()
    logger.info("Seeded default quests for %s", company_id)
    return True


async def list_quests(db: AsyncSession, company_id: str) -> list[Quest]:
    """All quest definitions for a tenant, daily first."""
    result = await db.execute(
        select(Quest)
        .where(Quest.company_id == company_id)
        .order_by(Quest.quest_type, Quest.quest_id)
    )
    return list(result.scalars())


async def get_quest(db: AsyncSession, company_id: str, quest_id: str) -> Quest | None:
    result = await db.execute(
        select(Quest).where(Quest.company_id == company_id, Quest.quest_id == quest_id)
    )
    return result.scalar_one_or_none()


async def get_active_catalog(db: AsyncSession, company_id: str) -> dict[str, Quest]:
    """Active quest definition per quest type, seeding defaults first."""
    await ensure_seeded(db, company_id)
    catalog: dict[str, Quest] = {}
    for quest in await list_quests(db, company_id):
        if quest.is_active and quest.quest_type in QUEST_TYPES and quest.quest_type not in catalog:
            catalog[quest.quest_type] = quest
    return catalog


def find_objective(catalog: dict[str, Quest], objective_id: str) -> tuple[Quest, dict[str, Any]] | None:
    """Locate an objective definition in the catalog by id."""
    for quest in catalog.values():
        for objective in quest.objectives:
            if objective["id"] == objective_id:
                return quest, objective
    return None


async def update_quest(
    db: AsyncSession,
    company_id: str,
    quest_id: str,
    updates: dict[str, Any],
) -> bool:
    """Apply a partial update to a quest definition. Returns False if it doesn't exist.

    ``updates`` may carry quest-level ``title``/``description``/``is_active``
    and an ``objectives`` list. Each objective entry is matched by ``id``:
    known ids get a partial update of their fields, unknown ids are appended
    as new objectives and must be complete definitions.
    """
    quest = await get_quest(db, company_id, quest_id)
    if quest is None:
        return False

    for key in QUEST_FIELDS:
        if key in updates and updates[key] is not None:
            setattr(quest, key, updates[key])

    if updates.get("objectives"):
        objectives = copy.deepcopy(quest.objectives)
        by_id = {objective["id"]: objective for objective in objectives}

        for patch in updates["objectives"]:
            objective_id = patch.get("id")
            target = by_id.get(objective_id)
            if target is None:
                target = {
                    "id": objective_id,
                    "title": patch.get("title") or "",
                    "description": patch.get("description") or "",
                    "message_target": patch.get("message_target", 0),
                    "success_message_target": patch.get("success_message_target", 0),
                    "xp_reward": patch.get("xp_reward", 0),
                    "order": patch.get("order", len(objectives) + 1),
                }
                objectives.append(target)
                by_id[objective_id] = target
            else:
                for key in OBJECTIVE_FIELDS:
                    if key in patch and patch[key] is not None:
                        target[key] = patch[key]
            validate_objective(target)

        quest.objectives = objectives

    quest.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return True


async def update_quest_and_migrate(
    database: Database,
    company_id: str,
    quest_id: str,
    updates: dict[str, Any],
    now: datetime | None = None,
) -> tuple[bool, MigrationReport | None]:
    """Commit a quest update, then reconcile the tenant's outstanding progress against it."""
    from questline.progression.quest_migrator import reconcile_tenant

    updated = await database.run(update_quest, company_id, quest_id, updates)
    if not updated:
        return False, None

    report = await reconcile_tenant(database, company_id, now=now)
    return True, report
