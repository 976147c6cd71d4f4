"""Administrative endpoints. Every route requires an admin role."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questline.admin.schemas import (
    AdminUserEntry,
    GrantXPRequest,
    GrantXPResponse,
    MigrationReportResponse,
    QuestResponse,
    QuestUpdateRequest,
    QuestUpdateResponse,
    RoleCreateRequest,
    RoleResponse,
    RoleUpdateRequest,
    SetBadgeRequest,
    SetBadgeResponse,
    TenantSettingsResponse,
    TenantSettingsUpdateRequest,
    UserRoleRequest,
    UserRolesResponse,
)
from questline.database import Database
from questline.db.models import Quest, Role, TenantSettings
from questline.dependencies import Identity, get_broadcaster, get_database, require_admin
from questline.progression.badge_rules import set_badge
from questline.progression.events import Broadcaster
from questline.progression.quest_catalog import (
    ensure_seeded,
    get_quest,
    list_quests,
    update_quest_and_migrate,
)
from questline.progression.quest_migrator import reconcile_tenant
from questline.progression.tenant import get_or_create_tenant_settings, update_tenant_settings
from questline.progression.xp_ledger import grant_xp
from questline.users.service import (
    assign_role,
    create_role,
    delete_role,
    list_roles,
    list_users,
    remove_role,
    update_role,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _quest_response(quest: Quest) -> QuestResponse:
    return QuestResponse(
        quest_id=quest.quest_id,
        quest_type=quest.quest_type,
        title=quest.title,
        description=quest.description,
        is_active=quest.is_active,
        objectives=quest.objectives,
        updated_at=quest.updated_at,
    )


def _role_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        color=role.color,
        is_active=role.is_active,
    )


def _tenant_response(tenant: TenantSettings) -> TenantSettingsResponse:
    return TenantSettingsResponse(
        company_id=tenant.company_id,
        apex_role_id=tenant.apex_role_id,
        success_channel_ids=list(tenant.success_channel_ids or []),
        xp_per_message=tenant.xp_per_message,
        xp_success_bonus=tenant.xp_success_bonus,
        xp_cooldown_seconds=tenant.xp_cooldown_seconds,
    )


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


async def _seeded_quests(db: AsyncSession, company_id: str) -> list[Quest]:
    await ensure_seeded(db, company_id)
    return await list_quests(db, company_id)


@router.get("/quests", response_model=list[QuestResponse])
async def admin_list_quests(
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    quests = await database.run(_seeded_quests, admin.company_id)
    return [_quest_response(q) for q in quests]


@router.put("/quests/{quest_id}", response_model=QuestUpdateResponse)
async def admin_update_quest(
    quest_id: str,
    body: QuestUpdateRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """Update a quest definition, then reconcile members' current progress."""
    updates = body.model_dump(exclude_unset=True)
    updated, report = await update_quest_and_migrate(database, admin.company_id, quest_id, updates)
    if not updated or report is None:
        raise HTTPException(status_code=404, detail="Quest not found")

    quest = await database.run(get_quest, admin.company_id, quest_id)
    logger.info(
        "quest_updated",
        company_id=admin.company_id,
        quest_id=quest_id,
        by=admin.user_id,
        migrated=report.updated,
        failed=report.failed,
    )
    return QuestUpdateResponse(
        quest=_quest_response(quest),
        migration=MigrationReportResponse(scanned=report.scanned, updated=report.updated, failed=report.failed),
    )


@router.post("/quests/migrate", response_model=MigrationReportResponse)
async def admin_migrate_quests(
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """Re-run progress reconciliation for the tenant's current periods."""
    report = await reconcile_tenant(database, admin.company_id)
    return MigrationReportResponse(scanned=report.scanned, updated=report.updated, failed=report.failed)


# ---------------------------------------------------------------------------
# XP & badges
# ---------------------------------------------------------------------------


@router.post("/xp", response_model=GrantXPResponse)
async def admin_grant_xp(
    body: GrantXPRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    result = await database.run(grant_xp, admin.company_id, body.user_id, body.amount)
    if result.level_up and result.new_level is not None:
        await broadcaster.publish_level_up(
            admin.company_id, result.user_id, result.old_level, result.new_level, result.total_xp,
        )
    await broadcaster.publish_badges_unlocked(admin.company_id, result.user_id, result.new_badges)
    return GrantXPResponse(
        user_id=result.user_id,
        total_xp=result.total_xp,
        level=result.level,
        level_up=result.level_up,
        new_badges=result.new_badges,
    )


@router.post("/badges", response_model=SetBadgeResponse)
async def admin_set_badge(
    body: SetBadgeRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """Lock or unlock a badge for a member."""
    changed = await database.run(set_badge, admin.company_id, body.user_id, body.badge, body.unlocked)
    return SetBadgeResponse(user_id=body.user_id, badge=body.badge, unlocked=body.unlocked, changed=changed)


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


@router.get("/roles", response_model=list[RoleResponse])
async def admin_list_roles(
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    roles = await database.run(list_roles, admin.company_id)
    return [_role_response(r) for r in roles]


@router.post("/roles", response_model=RoleResponse, status_code=201)
async def admin_create_role(
    body: RoleCreateRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    try:
        role = await database.run(create_role, admin.company_id, body.name, body.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _role_response(role)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def admin_update_role(
    role_id: int,
    body: RoleUpdateRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    try:
        role = await database.run(update_role, admin.company_id, role_id, body.name, body.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _role_response(role)


@router.delete("/roles/{role_id}")
async def admin_delete_role(
    role_id: int,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
) -> dict[str, bool]:
    await database.run(delete_role, admin.company_id, role_id)
    return {"success": True}


@router.post("/user-roles", response_model=UserRolesResponse)
async def admin_assign_role(
    body: UserRoleRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    roles = await database.run(assign_role, admin.company_id, body.user_id, body.role_name)
    return UserRolesResponse(roles=roles)


@router.delete("/user-roles", response_model=UserRolesResponse)
async def admin_remove_role(
    user_id: str = Query(..., min_length=1),
    role_name: str = Query(..., min_length=1),
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    roles = await database.run(remove_role, admin.company_id, user_id, role_name)
    return UserRolesResponse(roles=roles)


# ---------------------------------------------------------------------------
# Users & tenant settings
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[AdminUserEntry])
async def admin_list_users(
    limit: int = Query(100, ge=1, le=500),
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    return await database.run(list_users, admin.company_id, limit)


@router.get("/settings", response_model=TenantSettingsResponse)
async def admin_get_settings(
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    tenant = await database.run(get_or_create_tenant_settings, admin.company_id)
    return _tenant_response(tenant)


@router.put("/settings", response_model=TenantSettingsResponse)
async def admin_update_settings(
    body: TenantSettingsUpdateRequest,
    admin: Identity = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """Partial update of the tenant's XP rates, success channels and apex role."""
    tenant = await database.run(update_tenant_settings, admin.company_id, body.model_dump(exclude_unset=True))
    return _tenant_response(tenant)
