"""Entry points that sequence ledger, tracker and broadcast for one caller action.

An activity event is two transactions: the XP award, then quest counting.
A claim is likewise two: the claim, then the reward award. Both pairs are
logged so an unpaid claim can be found and replayed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from questline.database import Database
from questline.progression.events import Broadcaster
from questline.progression.quest_tracker import ClaimResult, claim_objective, record_activity
from questline.progression.tenant import activity_xp, get_or_create_tenant_settings
from questline.progression.xp_ledger import AwardResult, award_activity, award_quest_reward

logger = structlog.get_logger()


@dataclass
class ActivityOutcome:
    award: AwardResult
    completed_objectives: list[str] = field(default_factory=list)


@dataclass
class ClaimOutcome:
    claim: ClaimResult
    award: AwardResult


async def _resolve_activity_xp(db: AsyncSession, company_id: str, is_success_activity: bool) -> int:
    tenant = await get_or_create_tenant_settings(db, company_id)
    return activity_xp(tenant, is_success_activity)


async def _announce_award(broadcaster: Broadcaster, company_id: str, award: AwardResult) -> None:
    if award.level_up and award.new_level is not None:
        await broadcaster.publish_level_up(
            company_id, award.user_id, award.old_level, award.new_level, award.total_xp,
        )
    await broadcaster.publish_badges_unlocked(company_id, award.user_id, award.new_badges)


async def ingest_activity(
    database: Database,
    broadcaster: Broadcaster,
    company_id: str,
    user_id: str,
    is_success_activity: bool = False,
    xp_delta: int | None = None,
    now: datetime | None = None,
) -> ActivityOutcome:
    """Apply one activity event.

    When ``xp_delta`` is None the tenant's per-message rate (plus the success
    bonus for success events) is used.
    """
    if xp_delta is None:
        xp_delta = await database.run(_resolve_activity_xp, company_id, is_success_activity)

    award = await database.run(award_activity, company_id, user_id, xp_delta, is_success_activity, now)
    completed = await database.run(record_activity, company_id, user_id, is_success_activity, now)

    logger.info(
        "activity_ingested",
        company_id=company_id,
        user_id=user_id,
        success=is_success_activity,
        xp=xp_delta,
        total_xp=award.total_xp,
        level=award.level,
        completed=completed,
    )

    await _announce_award(broadcaster, company_id, award)
    await broadcaster.publish_quest_completed(company_id, user_id, completed)
    return ActivityOutcome(award=award, completed_objectives=completed)


async def claim_and_award(
    database: Database,
    broadcaster: Broadcaster,
    company_id: str,
    user_id: str,
    objective_id: str,
    now: datetime | None = None,
) -> ClaimOutcome:
    """Claim an objective, then award its XP.

    The claim commits before the award runs. If the award fails the
    ``quest_claimed`` event without a matching ``quest_reward_awarded`` marks
    the claim as unpaid.
    """
    claim = await database.run(claim_objective, company_id, user_id, objective_id, now)
    logger.info(
        "quest_claimed",
        company_id=company_id,
        user_id=user_id,
        objective_id=claim.objective_id,
        xp_reward=claim.xp_reward,
    )

    award = await database.run(award_quest_reward, company_id, user_id, claim.xp_reward, now)
    logger.info(
        "quest_reward_awarded",
        company_id=company_id,
        user_id=user_id,
        objective_id=claim.objective_id,
        xp_reward=claim.xp_reward,
        total_xp=award.total_xp,
    )

    await _announce_award(broadcaster, company_id, award)
    return ClaimOutcome(claim=claim, award=award)
