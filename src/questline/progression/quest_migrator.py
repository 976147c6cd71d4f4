"""Reconcile stored quest progress against the current quest catalog.

Progress records cache each objective's target, reward and order. When the
catalog changes, the cached copy is rewritten here and only here:

* catalog objectives missing from a record are appended, Open, at zero;
* a raised target rescales the accumulated counter proportionally,
  ``floor(old_count * new_target / old_target)`` clamped to the new target;
  a lowered target keeps the counter, clamped to the new target, so the
  objective completes on the next detection pass. The proportional formula
  is deliberately not applied to lowered targets: 7 of 10 becomes 5 of 5,
  not 3 of 5. Each counter dimension is
  handled separately and an old target of zero resets the counter;
* objectives dropped from the catalog stay in the record untouched.

Completion and claim flags are never cleared.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.config import get_settings
from questline.db.models import Quest, QuestProgress
from questline.progression.periods import current_period_keys
from questline.progression.quest_catalog import get_active_catalog

if TYPE_CHECKING:
    from questline.database import Database

logger = structlog.get_logger()

# (target field, counter field) for each counter dimension.
DIMENSIONS: tuple[tuple[str, str], ...] = (
    ("message_target", "current_messages"),
    ("success_message_target", "current_success_messages"),
)
CACHED_FIELDS = ("message_target", "success_message_target", "xp_reward", "order")


@dataclass
class MigrationReport:
    scanned: int = 0
    updated: int = 0
    failed: int = 0


def new_objective_progress(definition: dict[str, Any]) -> dict[str, Any]:
    """Fresh Open progress entry for a catalog objective."""
    return {
        "objective_id": definition["id"],
        "message_target": definition["message_target"],
        "success_message_target": definition["success_message_target"],
        "xp_reward": definition["xp_reward"],
        "order": definition["order"],
        "current_messages": 0,
        "current_success_messages": 0,
        "completed": False,
        "claimed": False,
        "completed_at": None,
        "claimed_at": None,
    }


def rescale(count: int, old_target: int, new_target: int) -> int:
    """Carry a counter across a target change."""
    if old_target <= 0:
        return 0
    if new_target < old_target:
        return min(count, new_target)
    return min(count * new_target // old_target, new_target)


def reconcile_objectives(
    progress: list[dict[str, Any]],
    definitions: list[dict[str, Any]],
) -> tuple[list[dict[str, Any]], bool]:
    """Return a reconciled copy of ``progress`` and whether anything changed."""
    objectives = copy.deepcopy(progress)
    by_id = {entry["objective_id"]: entry for entry in objectives}
    changed = False

    for definition in definitions:
        entry = by_id.get(definition["id"])
        if entry is None:
            entry = new_objective_progress(definition)
            objectives.append(entry)
            by_id[definition["id"]] = entry
            changed = True
            continue

        if all(entry.get(key) == definition[key] for key in CACHED_FIELDS):
            continue

        for target_key, counter_key in DIMENSIONS:
            old_target = entry.get(target_key, 0)
            new_target = definition[target_key]
            if old_target != new_target:
                entry[counter_key] = rescale(entry.get(counter_key, 0), old_target, new_target)
        for key in CACHED_FIELDS:
            entry[key] = definition[key]
        changed = True

    return objectives, changed


def reconcile_record(record: QuestProgress, quest: Quest, now: datetime | None = None) -> bool:
    """Reconcile one progress record in place against its quest definition."""
    objectives, changed = reconcile_objectives(record.objectives or [], quest.objectives or [])
    if changed:
        record.objectives = objectives
        record.updated_at = now or datetime.now(timezone.utc)
    return changed


async def _list_outstanding(db: AsyncSession, company_id: str, period_keys: dict[str, str]) -> list[int]:
    """Ids of the tenant's progress records for the currently active periods."""
    result = await db.execute(
        select(QuestProgress.id)
        .where(
            QuestProgress.company_id == company_id,
            or_(*(
                and_(QuestProgress.quest_type == quest_type, QuestProgress.period_key == key)
                for quest_type, key in period_keys.items()
            )),
        )
        .order_by(QuestProgress.id)
    )
    return list(result.scalars())


async def _reconcile_one(db: AsyncSession, company_id: str, record_id: int, now: datetime) -> bool:
    result = await db.execute(select(QuestProgress).where(QuestProgress.id == record_id))
    record = result.scalar_one_or_none()
    if record is None:
        return False

    catalog = await get_active_catalog(db, company_id)
    quest = catalog.get(record.quest_type)
    if quest is None:
        return False

    changed = reconcile_record(record, quest, now)
    if changed:
        await db.flush()
    return changed


async def reconcile_tenant(
    database: Database,
    company_id: str,
    now: datetime | None = None,
) -> MigrationReport:
    """Reconcile every outstanding progress record of a tenant.

    Each record is its own transaction. A record that fails is logged and
    counted, and the sweep moves on. Safe to re-run.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    period_keys = current_period_keys(get_settings().quest_timezone, now)

    report = MigrationReport()
    record_ids = await database.run(_list_outstanding, company_id, period_keys)

    for record_id in record_ids:
        report.scanned += 1
        try:
            if await database.run(_reconcile_one, company_id, record_id, now):
                report.updated += 1
        except Exception as exc:
            report.failed += 1
            logger.warning(
                "quest_migration_record_failed",
                company_id=company_id,
                record_id=record_id,
                error=str(exc),
                exc_info=True,
            )

    logger.info(
        "quest_migration_complete",
        company_id=company_id,
        scanned=report.scanned,
        updated=report.updated,
        failed=report.failed,
    )
    return report
