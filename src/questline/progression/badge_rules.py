"""Badge unlock rules.

Automatic reconciliation only ever unlocks. Locking is reserved for the
explicit administrative ``set_badge`` path.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.db.models import UserProgression
from questline.progression.exceptions import NotFoundError
from questline.progression.tenant import get_or_create_tenant_settings

BadgeName = Literal["bronze", "silver", "gold", "platinum", "apex"]

BADGE_NAMES: tuple[BadgeName, ...] = ("bronze", "silver", "gold", "platinum", "apex")

# Level-threshold badges, checked in order.
LEVEL_BADGES: tuple[tuple[BadgeName, int], ...] = (
    ("bronze", 1),
    ("silver", 5),
    ("gold", 10),
    ("platinum", 20),
)

BADGE_INFO: dict[str, dict[str, str]] = {
    "bronze": {"name": "Bronze", "emoji": "\U0001f949", "description": "Reach Level 1"},
    "silver": {"name": "Silver", "emoji": "\U0001f948", "description": "Reach Level 5"},
    "gold": {"name": "Gold", "emoji": "\U0001f947", "description": "Reach Level 10"},
    "platinum": {"name": "Platinum", "emoji": "\U0001f48e", "description": "Reach Level 20"},
    "apex": {"name": "Apex Reseller", "emoji": "\U0001f451", "description": "Admin-allowed Apex Role"},
}


def has_badge(state: UserProgression, badge: str) -> bool:
    return bool(getattr(state, f"badge_{badge}"))


def reconcile_badges(state: UserProgression, apex_role_id: str | None) -> list[str]:
    """Unlock every badge the state now qualifies for. Returns the newly unlocked names."""
    unlocked: list[str] = []

    for badge, min_level in LEVEL_BADGES:
        if state.level >= min_level and not has_badge(state, badge):
            setattr(state, f"badge_{badge}", True)
            unlocked.append(badge)

    if apex_role_id and apex_role_id in (state.roles or []) and not state.badge_apex:
        state.badge_apex = True
        unlocked.append("apex")

    return unlocked


async def reconcile(db: AsyncSession, company_id: str, user_id: str) -> list[str]:
    """Re-evaluate a stored user's badges against their level, roles and the tenant apex role."""
    state = await _get_state(db, company_id, user_id)
    tenant = await get_or_create_tenant_settings(db, company_id)
    unlocked = reconcile_badges(state, tenant.apex_role_id)
    if unlocked:
        state.updated_at = datetime.now(timezone.utc)
        await db.flush()
    return unlocked


async def set_badge(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    badge: str,
    unlocked: bool,
) -> bool:
    """Administratively lock or unlock a badge. Returns True if the flag changed."""
    if badge not in BADGE_NAMES:
        msg = f"Unknown badge: {badge}"
        raise ValueError(msg)

    state = await _get_state(db, company_id, user_id)
    if has_badge(state, badge) == unlocked:
        return False

    setattr(state, f"badge_{badge}", unlocked)
    state.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return True


def describe_badges(state: UserProgression) -> list[dict]:
    """Badge list for profile views, in display order."""
    return [
        {"key": badge, **BADGE_INFO[badge], "unlocked": has_badge(state, badge)}
        for badge in BADGE_NAMES
    ]


async def _get_state(db: AsyncSession, company_id: str, user_id: str) -> UserProgression:
    result = await db.execute(
        select(UserProgression).where(
            UserProgression.company_id == company_id,
            UserProgression.user_id == user_id,
        )
    )
    state = result.scalar_one_or_none()
    if state is None:
        msg = f"User {user_id} not found"
        raise NotFoundError(msg, user_id=user_id)
    return state
