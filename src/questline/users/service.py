"""Member profiles, leaderboard and role management."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import and_, delete, func, or_, select

from questline.config import get_settings
from questline.db.models import Role, UserProgression
from questline.progression.badge_rules import describe_badges, reconcile_badges
from questline.progression.exceptions import NotFoundError
from questline.progression.level_curve import compute_level
from questline.progression.tenant import get_or_create_tenant_settings
from questline.progression.xp_ledger import get_or_create_state, get_state

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from questline.database import Database
    from questline.users.directory import DirectoryClient

logger = structlog.get_logger()

PLACEHOLDER_USERNAME = "unknown"
PLACEHOLDER_NAME = "Unknown User"
DEFAULT_ROLE = {"name": "Admin", "description": "administrator role with full access"}


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


def needs_directory_refresh(state: UserProgression | None) -> bool:
    """True when the cached profile is missing or still holds placeholders."""
    if state is None:
        return True
    return (
        not state.avatar_url
        or state.username == PLACEHOLDER_USERNAME
        or state.name == PLACEHOLDER_NAME
    )


def apply_directory_profile(state: UserProgression, profile: dict[str, Any]) -> bool:
    """Copy directory fields onto the cached profile. Returns True if anything changed."""
    changed = False
    for field in ("username", "name", "avatar_url"):
        value = profile.get(field)
        if value and getattr(state, field) != value:
            setattr(state, field, value)
            changed = True
    return changed


def _user_payload(state: UserProgression) -> dict[str, Any]:
    return {
        "user_id": state.user_id,
        "username": state.username,
        "name": state.name,
        "avatar_url": state.avatar_url,
        "level": state.level,
        "xp": state.total_xp,
        "points": state.points,
        "badges": {
            "bronze": state.badge_bronze,
            "silver": state.badge_silver,
            "gold": state.badge_gold,
            "platinum": state.badge_platinum,
            "apex": state.badge_apex,
        },
        "roles": list(state.roles or []),
        "stats": {
            "messages": state.messages_sent,
            "success_messages": state.success_messages_sent,
            "voice_minutes": state.voice_minutes,
        },
        "level_up_pending": state.level_up_pending,
    }


async def get_profile(
    db: AsyncSession,
    company_id: str,
    user_id: str,
    directory_profile: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Profile view: cached user fields, level info and badges.

    Creates the user on first read and re-evaluates badges every time.
    """
    state = await get_or_create_state(db, company_id, user_id, profile=directory_profile)
    refreshed = False
    if directory_profile and needs_directory_refresh(state):
        refreshed = apply_directory_profile(state, directory_profile)

    tenant = await get_or_create_tenant_settings(db, company_id)
    new_badges = reconcile_badges(state, tenant.apex_role_id)
    if new_badges or refreshed:
        state.updated_at = datetime.now(timezone.utc)
        await db.flush()

    return {
        "user": _user_payload(state),
        "level_info": compute_level(state.total_xp),
        "badges": describe_badges(state),
        "new_badges": new_badges,
    }


async def load_profile(
    database: Database,
    directory: DirectoryClient | None,
    company_id: str,
    user_id: str,
) -> dict[str, Any]:
    """Read a profile, consulting the directory first when the cache is stale.

    The directory call happens outside any transaction.
    """
    state = await database.run(get_state, company_id, user_id)
    directory_profile = None
    if directory is not None and needs_directory_refresh(state):
        directory_profile = await directory.fetch_user(user_id)
    return await database.run(get_profile, company_id, user_id, directory_profile)


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


async def get_leaderboard(
    db: AsyncSession,
    company_id: str,
    offset: int = 0,
    limit: int = 10,
    search: str = "",
) -> dict[str, Any]:
    """Users ranked by XP, then level, then message count.

    Rank is global (``1 + users strictly ahead``), so a filtered page keeps
    each user's overall position and ties share a rank.
    """
    excluded = get_settings().leaderboard_excluded_user_ids
    scope = [UserProgression.company_id == company_id]
    if excluded:
        scope.append(UserProgression.user_id.not_in(excluded))

    filters = list(scope)
    if search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(or_(UserProgression.name.ilike(pattern), UserProgression.username.ilike(pattern)))

    total_count = (await db.execute(
        select(func.count()).select_from(UserProgression).where(*filters)
    )).scalar_one()

    result = await db.execute(
        select(UserProgression)
        .where(*filters)
        .order_by(
            UserProgression.total_xp.desc(),
            UserProgression.level.desc(),
            UserProgression.messages_sent.desc(),
            UserProgression.user_id.asc(),
        )
        .offset(offset)
        .limit(limit)
    )

    users = []
    for state in list(result.scalars()):
        ahead = (await db.execute(
            select(func.count()).select_from(UserProgression).where(
                *scope,
                or_(
                    UserProgression.total_xp > state.total_xp,
                    and_(UserProgression.total_xp == state.total_xp, UserProgression.level > state.level),
                    and_(
                        UserProgression.total_xp == state.total_xp,
                        UserProgression.level == state.level,
                        UserProgression.messages_sent > state.messages_sent,
                    ),
                ),
            )
        )).scalar_one()
        payload = _user_payload(state)
        users.append({
            "rank": ahead + 1,
            "user_id": payload["user_id"],
            "username": payload["username"],
            "name": payload["name"],
            "avatar_url": payload["avatar_url"],
            "level": payload["level"],
            "xp": payload["xp"],
            "badges": payload["badges"],
            "stats": payload["stats"],
        })

    current_page = offset // limit + 1 if limit else 1
    total_pages = math.ceil(total_count / limit) if limit else 0
    return {
        "users": users,
        "total_count": total_count,
        "current_page": current_page,
        "total_pages": total_pages,
        "has_next_page": current_page < total_pages,
        "has_prev_page": current_page > 1,
    }


async def list_users(db: AsyncSession, company_id: str, limit: int = 100) -> list[dict[str, Any]]:
    """Admin user listing, highest level first."""
    result = await db.execute(
        select(UserProgression)
        .where(UserProgression.company_id == company_id)
        .order_by(UserProgression.level.desc(), UserProgression.total_xp.desc())
        .limit(limit)
    )
    return [
        {**_user_payload(state), "created_at": state.created_at}
        for state in result.scalars()
    ]


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


async def is_admin(db: AsyncSession, company_id: str, user_id: str) -> bool:
    """Whether the user holds one of the configured admin role names."""
    state = await get_state(db, company_id, user_id)
    if state is None:
        return False
    admin_names = set(get_settings().admin_role_names)
    return any(role in admin_names for role in state.roles or [])


async def _require_user(db: AsyncSession, company_id: str, user_id: str) -> UserProgression:
    state = await get_state(db, company_id, user_id)
    if state is None:
        msg = f"User {user_id} not found"
        raise NotFoundError(msg, user_id=user_id)
    return state


async def assign_role(db: AsyncSession, company_id: str, user_id: str, role_name: str) -> list[str]:
    """Add a role to a user and re-evaluate badges. Returns the user's roles."""
    state = await _require_user(db, company_id, user_id)
    if role_name not in (state.roles or []):
        state.roles = [*(state.roles or []), role_name]
        tenant = await get_or_create_tenant_settings(db, company_id)
        new_badges = reconcile_badges(state, tenant.apex_role_id)
        state.updated_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("role_assigned", company_id=company_id, user_id=user_id, role=role_name, new_badges=new_badges)
    return list(state.roles)


async def remove_role(db: AsyncSession, company_id: str, user_id: str, role_name: str) -> list[str]:
    """Remove a role from a user. Badges already unlocked stay unlocked."""
    state = await _require_user(db, company_id, user_id)
    if role_name in (state.roles or []):
        state.roles = [role for role in state.roles if role != role_name]
        state.updated_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("role_removed", company_id=company_id, user_id=user_id, role=role_name)
    return list(state.roles)


async def list_roles(db: AsyncSession, company_id: str) -> list[Role]:
    """Roles of a tenant by name. A tenant without roles gets a default Admin role."""
    result = await db.execute(select(Role).where(Role.company_id == company_id).order_by(Role.name))
    roles = list(result.scalars())
    if not roles:
        role = Role(company_id=company_id, **DEFAULT_ROLE)
        db.add(role)
        await db.flush()
        roles = [role]
    return roles


async def _role_name_taken(db: AsyncSession, company_id: str, name: str) -> bool:
    result = await db.execute(
        select(Role.id).where(Role.company_id == company_id, Role.name == name)
    )
    return result.scalar_one_or_none() is not None


async def create_role(db: AsyncSession, company_id: str, name: str, description: str = "") -> Role:
    """Create a role.

    Raises:
        ValueError: If the name is blank or already used in this tenant.
    """
    name = name.strip()
    if not name:
        msg = "Name cannot be empty"
        raise ValueError(msg)
    if await _role_name_taken(db, company_id, name):
        msg = "Role name already exists"
        raise ValueError(msg)

    role = Role(company_id=company_id, name=name, description=description or "")
    db.add(role)
    await db.flush()
    return role


async def update_role(
    db: AsyncSession,
    company_id: str,
    role_id: int,
    name: str | None = None,
    description: str | None = None,
) -> Role:
    result = await db.execute(select(Role).where(Role.id == role_id, Role.company_id == company_id))
    role = result.scalar_one_or_none()
    if role is None:
        msg = f"Role {role_id} not found"
        raise NotFoundError(msg, role_id=role_id)

    if name and name != role.name:
        if await _role_name_taken(db, company_id, name):
            msg = "Role name already exists"
            raise ValueError(msg)
        role.name = name
    if description:
        role.description = description

    await db.flush()
    return role


async def delete_role(db: AsyncSession, company_id: str, role_id: int) -> None:
    """Hard-delete a role definition. Users keep any role names already assigned."""
    result = await db.execute(
        delete(Role).where(Role.id == role_id, Role.company_id == company_id)
    )
    if not result.rowcount:
        msg = f"Role {role_id} not found"
        raise NotFoundError(msg, role_id=role_id)
