"""Per-tenant gamification settings."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.config import get_settings
from questline.db.models import TenantSettings


async def get_or_create_tenant_settings(db: AsyncSession, company_id: str) -> TenantSettings:
    """Get the tenant's settings row, creating it from application defaults."""
    result = await db.execute(
        select(TenantSettings).where(TenantSettings.company_id == company_id)
    )
    tenant = result.scalar_one_or_none()
    if tenant is None:
        settings = get_settings()
        tenant = TenantSettings(
            company_id=company_id,
            apex_role_id=settings.default_apex_role_id,
            success_channel_ids=[],
            xp_per_message=settings.default_xp_per_message,
            xp_success_bonus=settings.default_xp_success_bonus,
            xp_cooldown_seconds=settings.default_xp_cooldown_seconds,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(tenant)
        await db.flush()
    return tenant


def activity_xp(tenant: TenantSettings, is_success_activity: bool) -> int:
    """XP earned by one message: the per-message rate plus the success bonus when flagged.

    ``xp_cooldown_seconds`` is stored but not checked.
    """
    if is_success_activity:
        return tenant.xp_per_message + tenant.xp_success_bonus
    return tenant.xp_per_message


async def update_tenant_settings(db: AsyncSession, company_id: str, updates: dict) -> TenantSettings:
    """Apply a partial update to the tenant's settings.

    ``apex_role_id`` may be cleared with None; None for any other field leaves it unchanged.
    """
    tenant = await get_or_create_tenant_settings(db, company_id)
    if "apex_role_id" in updates:
        tenant.apex_role_id = updates["apex_role_id"]
    for field in ("xp_per_message", "xp_success_bonus", "xp_cooldown_seconds"):
        if updates.get(field) is not None:
            setattr(tenant, field, updates[field])
    if updates.get("success_channel_ids") is not None:
        tenant.success_channel_ids = list(updates["success_channel_ids"])
    tenant.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return tenant
