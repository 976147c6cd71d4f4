"""Tenant settings: lazy creation, activity XP and partial updates."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from questline.progression.tenant import activity_xp, get_or_create_tenant_settings, update_tenant_settings


class TestTenantSettings:
    @pytest.mark.asyncio
    async def test_created_from_defaults(self, db_session: AsyncSession):
        tenant = await get_or_create_tenant_settings(db_session, "acme")
        assert tenant.xp_per_message == 5
        assert activity_xp(tenant, False) == 5
        assert activity_xp(tenant, True) == 15

    @pytest.mark.asyncio
    async def test_partial_update(self, db_session: AsyncSession):
        tenant = await update_tenant_settings(db_session, "acme", {"xp_per_message": 2, "success_channel_ids": ("c1",)})
        assert tenant.xp_per_message == 2
        assert tenant.xp_success_bonus == 10
        assert tenant.success_channel_ids == ["c1"]

    @pytest.mark.asyncio
    async def test_none_leaves_fields_unchanged(self, db_session: AsyncSession):
        await update_tenant_settings(db_session, "acme", {"xp_per_message": 2, "apex_role_id": "apex-role"})
        tenant = await update_tenant_settings(
            db_session, "acme", {"xp_per_message": None, "success_channel_ids": None, "apex_role_id": None},
        )
        await db_session.commit()
        assert tenant.xp_per_message == 2
        assert tenant.success_channel_ids == []
        assert tenant.apex_role_id is None
