"""Member-facing progression endpoints: profile, activity, quests, level-ups, leaderboard."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questline.config import get_settings
from questline.database import Database
from questline.dependencies import (
    Identity,
    get_broadcaster,
    get_database,
    get_directory,
    get_identity,
)
from questline.progression.activity import claim_and_award, ingest_activity
from questline.progression.events import Broadcaster
from questline.progression.quest_tracker import get_progress, mark_quest_seen
from questline.progression.schemas import (
    ActivityRequest,
    ActivityResponse,
    ClaimRequest,
    ClaimResponse,
    LeaderboardResponse,
    LevelUpItem,
    LevelUpsResponse,
    MarkedSeenResponse,
    ProfileResponse,
    QuestSeenRequest,
    QuestsResponse,
)
from questline.progression.xp_ledger import (
    acknowledge_level_up_pending,
    get_state,
    get_unseen_level_ups,
    mark_all_level_ups_seen,
    mark_level_up_seen,
)
from questline.users.directory import DirectoryClient
from questline.users.service import get_leaderboard, load_profile

router = APIRouter(prefix="/api/v1", tags=["Progression"])


# ── Profile & activity ──


@router.get("/me/profile", response_model=ProfileResponse)
async def my_profile(
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
    directory: DirectoryClient | None = Depends(get_directory),
):
    """Profile, level progress and badges. Creates the member on first read."""
    return await load_profile(database, directory, identity.company_id, identity.user_id)


@router.post("/me/activity", response_model=ActivityResponse)
async def record_my_activity(
    body: ActivityRequest,
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Ingest one activity event (a message, optionally in a success channel).

    XP comes from the tenant settings; members cannot choose the amount.
    """
    outcome = await ingest_activity(
        database,
        broadcaster,
        identity.company_id,
        identity.user_id,
        is_success_activity=body.success,
    )
    award = outcome.award
    return ActivityResponse(
        total_xp=award.total_xp,
        level=award.level,
        level_up=award.level_up,
        new_level=award.new_level,
        new_badges=award.new_badges,
        completed_objectives=outcome.completed_objectives,
    )


# ── Quests ──


@router.get("/me/quests", response_model=QuestsResponse)
async def my_quests(
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
):
    """Current daily and weekly quest progress."""
    return await database.run(get_progress, identity.company_id, identity.user_id)


@router.post("/me/quests/claim", response_model=ClaimResponse)
async def claim_quest_objective(
    body: ClaimRequest,
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Claim a completed objective and receive its XP reward."""
    outcome = await claim_and_award(
        database, broadcaster, identity.company_id, identity.user_id, body.objective_id,
    )
    return ClaimResponse(
        objective_id=outcome.claim.objective_id,
        quest_type=outcome.claim.quest_type,
        xp_reward=outcome.claim.xp_reward,
        total_xp=outcome.award.total_xp,
        level=outcome.award.level,
        level_up=outcome.award.level_up,
        new_level=outcome.award.new_level,
        new_badges=outcome.award.new_badges,
    )


@router.post("/me/quests/seen", response_model=MarkedSeenResponse)
async def mark_my_quest_seen(
    body: QuestSeenRequest,
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
):
    await database.run(mark_quest_seen, identity.company_id, identity.user_id, body.quest_type)
    return MarkedSeenResponse(updated=1)


# ── Level-ups ──


async def _level_ups(db: AsyncSession, company_id: str, user_id: str) -> dict[str, Any]:
    state = await get_state(db, company_id, user_id)
    return {
        "notifications": await get_unseen_level_ups(db, company_id, user_id),
        "level_up_pending": bool(state and state.level_up_pending),
    }


async def _mark_all_level_ups_seen(db: AsyncSession, company_id: str, user_id: str) -> int:
    updated = await mark_all_level_ups_seen(db, company_id, user_id)
    if await get_state(db, company_id, user_id) is not None:
        await acknowledge_level_up_pending(db, company_id, user_id)
    return updated


@router.get("/me/level-ups", response_model=LevelUpsResponse)
async def my_level_ups(
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
):
    """Unseen level-up notifications, oldest first."""
    data = await database.run(_level_ups, identity.company_id, identity.user_id)
    return LevelUpsResponse(
        notifications=[LevelUpItem(**item) for item in data["notifications"]],
        level_up_pending=data["level_up_pending"],
    )


@router.post("/me/level-ups/{notification_id}/seen", response_model=MarkedSeenResponse)
async def mark_my_level_up_seen(
    notification_id: int,
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
):
    await database.run(mark_level_up_seen, identity.company_id, identity.user_id, notification_id)
    return MarkedSeenResponse(updated=1)


@router.post("/me/level-ups/seen", response_model=MarkedSeenResponse)
async def mark_my_level_ups_seen(
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
):
    """Mark every level-up seen and clear the pending flag."""
    updated = await database.run(_mark_all_level_ups_seen, identity.company_id, identity.user_id)
    return MarkedSeenResponse(updated=updated)


# ── Leaderboard ──


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: str = Query("", max_length=100),
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
):
    """Members ranked by XP."""
    limit = min(limit, get_settings().leaderboard_max_page_size)
    offset = (page - 1) * limit
    return await database.run(get_leaderboard, identity.company_id, offset, limit, search)
