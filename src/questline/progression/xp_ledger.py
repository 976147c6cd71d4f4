"""XP awards with level recomputation, level-up logging and badge reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from questline.db.models import LevelUpNotification, UserProgression
from questline.progression.badge_rules import reconcile_badges
from questline.progression.exceptions import NotFoundError
from questline.progression.level_curve import level_for_xp
from questline.progression.tenant import get_or_create_tenant_settings

logger = logging.getLogger(__name__)


@dataclass
class AwardResult:
    """Outcome of one XP application."""

    user_id: str
    total_xp: int
    level: int
    level_up: bool = False
    old_level: int = 0
    new_level: int | None = None
    new_badges: list[str] = field(default_factory=list)


async def get_state(db: AsyncSession, company_id: str, user_id: str) -> UserProgression | None:
    result = await db.execute(
        select(UserProgression).where(
            UserProgression.company_id == company_id,
            UserProgression.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_or_create_state(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    profile: dict | None = None,
) -> UserProgression:
    """Get or create the progression row for a user, zeroed on creation.

    ``profile`` optionally seeds the cached directory fields
    (``username``, ``name``, ``avatar_url``).
    """
    state = await get_state(db, company_id, user_id)
    if state is None:
        profile = profile or {}
        state = UserProgression(
            company_id=company_id,
            user_id=user_id,
            username=profile.get("username") or "unknown",
            name=profile.get("name") or "Unknown User",
            avatar_url=profile.get("avatar_url"),
            total_xp=0,
            level=0,
            points=0,
            messages_sent=0,
            success_messages_sent=0,
            voice_minutes=0,
            roles=[],
            level_up_pending=False,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(state)
        await db.flush()
    return state


async def award_activity(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    xp_delta: int,
    is_success_activity: bool = False,
    now: datetime | None = None,
) -> AwardResult:
    """Apply one activity event: XP, message counters, level and badges.

    ``xp_delta`` may be 0; the counters still move.
    """
    if xp_delta < 0:
        msg = f"xp_delta must be non-negative, got {xp_delta}"
        raise ValueError(msg)
    if now is None:
        now = datetime.now(timezone.utc)

    state = await get_or_create_state(db, company_id, user_id)
    state.messages_sent += 1
    if is_success_activity:
        state.success_messages_sent += 1
    state.last_message_at = now

    return await _apply_xp(db, state, xp_delta, now)


async def award_quest_reward(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    xp_amount: int,
    now: datetime | None = None,
) -> AwardResult:
    """Apply a claimed quest reward. Activity counters are left alone."""
    if xp_amount < 0:
        msg = f"xp_amount must be non-negative, got {xp_amount}"
        raise ValueError(msg)
    if now is None:
        now = datetime.now(timezone.utc)

    state = await get_or_create_state(db, company_id, user_id)
    return await _apply_xp(db, state, xp_amount, now)


async def grant_xp(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    xp_amount: int,
    now: datetime | None = None,
) -> AwardResult:
    """Administrative XP grant. Same effects as a quest reward; the amount must be positive."""
    if xp_amount <= 0:
        msg = f"xp_amount must be positive, got {xp_amount}"
        raise ValueError(msg)
    result = await award_quest_reward(db, company_id, user_id, xp_amount, now)
    logger.info("Granted %d XP to %s/%s", xp_amount, company_id, user_id)
    return result


async def _apply_xp(
    db: AsyncSession,
    state: UserProgression,
    amount: int,
    now: datetime,
) -> AwardResult:
    """Add XP, recompute level, log a level-up and reconcile badges.

    After granting:
    1. Update user_progression.total_xp
    2. Recompute level from total_xp
    3. If level rose, set level_up_pending and append a LevelUpNotification
    4. Re-run badge rules against the new level
    """
    old_level = state.level
    state.total_xp += amount
    state.level = level_for_xp(state.total_xp)
    state.updated_at = now

    level_up = state.level > old_level
    if level_up:
        state.level_up_pending = True
        db.add(LevelUpNotification(
            company_id=state.company_id,
            user_id=state.user_id,
            level=state.level,
            xp=state.total_xp,
            seen=False,
            created_at=now,
        ))

    tenant = await get_or_create_tenant_settings(db, state.company_id)
    new_badges = reconcile_badges(state, tenant.apex_role_id)

    await db.flush()

    return AwardResult(
        user_id=state.user_id,
        total_xp=state.total_xp,
        level=state.level,
        level_up=level_up,
        old_level=old_level,
        new_level=state.level if level_up else None,
        new_badges=new_badges,
    )


# ---------------------------------------------------------------------------
# Level-up notifications
# ---------------------------------------------------------------------------


async def get_unseen_level_ups(db: AsyncSession, company_id: str, user_id: str) -> list[dict]:
    """Return level-up notifications the user hasn't seen yet, oldest first."""
    result = await db.execute(
        select(LevelUpNotification)
        .where(
            LevelUpNotification.company_id == company_id,
            LevelUpNotification.user_id == user_id,
            LevelUpNotification.seen.is_(False),
        )
        .order_by(LevelUpNotification.created_at.asc(), LevelUpNotification.id.asc())
    )
    return [
        {
            "id": row.id,
            "level": row.level,
            "xp": row.xp,
            "seen": row.seen,
            "created_at": row.created_at,
        }
        for row in result.scalars()
    ]


async def mark_level_up_seen(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    notification_id: int,
) -> None:
    """Mark one of the user's level-up notifications as seen."""
    result = await db.execute(
        select(LevelUpNotification).where(
            LevelUpNotification.id == notification_id,
            LevelUpNotification.company_id == company_id,
            LevelUpNotification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        msg = f"Level-up notification {notification_id} not found"
        raise NotFoundError(msg, notification_id=notification_id)
    notification.seen = True
    await db.flush()


async def mark_all_level_ups_seen(db: AsyncSession, company_id: str, user_id: str) -> int:
    """Mark every unseen level-up notification as seen. Returns how many changed."""
    result = await db.execute(
        update(LevelUpNotification)
        .where(
            LevelUpNotification.company_id == company_id,
            LevelUpNotification.user_id == user_id,
            LevelUpNotification.seen.is_(False),
        )
        .values(seen=True)
    )
    return result.rowcount or 0


async def acknowledge_level_up_pending(db: AsyncSession, company_id: str, user_id: str) -> None:
    """Clear the single-slot ``level_up_pending`` flag."""
    state = await get_state(db, company_id, user_id)
    if state is None:
        msg = f"User {user_id} not found"
        raise NotFoundError(msg, user_id=user_id)
    if state.level_up_pending:
        state.level_up_pending = False
        state.updated_at = datetime.now(timezone.utc)
        await db.flush()
