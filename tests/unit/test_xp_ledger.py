"""XP ledger tests: awards, counters, level-ups, notifications, badges."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questline.db.models import LevelUpNotification
from questline.progression.exceptions import NotFoundError
from questline.progression.tenant import update_tenant_settings
from questline.progression.xp_ledger import (
    acknowledge_level_up_pending,
    award_activity,
    award_quest_reward,
    get_or_create_state,
    get_state,
    get_unseen_level_ups,
    grant_xp,
    mark_all_level_ups_seen,
    mark_level_up_seen,
)


async def _notification_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(LevelUpNotification).where(LevelUpNotification.user_id == user_id)
    )
    return result.scalar_one()


class TestGetOrCreateState:
    """Lazy creation of progression state."""

    @pytest.mark.asyncio
    async def test_creates_zeroed_state(self, db_session: AsyncSession):
        state = await get_or_create_state(db_session, "acme", "u1")
        assert state.total_xp == 0
        assert state.level == 0
        assert state.messages_sent == 0
        assert state.username == "unknown"
        assert state.name == "Unknown User"
        assert not state.badge_bronze

    @pytest.mark.asyncio
    async def test_returns_existing(self, db_session: AsyncSession):
        first = await get_or_create_state(db_session, "acme", "u1")
        first.total_xp = 40
        second = await get_or_create_state(db_session, "acme", "u1")
        assert second.total_xp == 40

    @pytest.mark.asyncio
    async def test_seeds_profile_fields(self, db_session: AsyncSession):
        state = await get_or_create_state(
            db_session, "acme", "u1", profile={"username": "ada", "name": "Ada", "avatar_url": "https://a/x.png"},
        )
        assert state.username == "ada"
        assert state.avatar_url == "https://a/x.png"

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, db_session: AsyncSession):
        await award_activity(db_session, "acme", "u1", 50)
        other = await get_or_create_state(db_session, "globex", "u1")
        assert other.total_xp == 0


class TestAwardActivity:
    """Activity awards move XP and counters."""

    @pytest.mark.asyncio
    async def test_adds_xp_and_counts_message(self, db_session: AsyncSession, now):
        result = await award_activity(db_session, "acme", "u1", 5, now=now)
        assert result.total_xp == 5
        assert result.level == 0
        assert result.level_up is False
        state = await get_state(db_session, "acme", "u1")
        assert state.messages_sent == 1
        assert state.success_messages_sent == 0
        assert state.last_message_at is not None

    @pytest.mark.asyncio
    async def test_success_event_counts_both(self, db_session: AsyncSession):
        await award_activity(db_session, "acme", "u1", 15, is_success_activity=True)
        state = await get_state(db_session, "acme", "u1")
        assert state.messages_sent == 1
        assert state.success_messages_sent == 1

    @pytest.mark.asyncio
    async def test_zero_delta_still_counts(self, db_session: AsyncSession):
        result = await award_activity(db_session, "acme", "u1", 0)
        assert result.total_xp == 0
        state = await get_state(db_session, "acme", "u1")
        assert state.messages_sent == 1

    @pytest.mark.asyncio
    async def test_negative_delta_rejected(self, db_session: AsyncSession):
        with pytest.raises(ValueError):
            await award_activity(db_session, "acme", "u1", -1)

    @pytest.mark.asyncio
    async def test_ten_awards_of_five(self, db_session: AsyncSession):
        for _ in range(10):
            result = await award_activity(db_session, "acme", "u1", 5)
        assert result.total_xp == 50
        assert result.level == 0


class TestLevelUp:
    """Level transitions append exactly one notification and unlock badges."""

    @pytest.mark.asyncio
    async def test_crossing_level_one(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 95)
        result = await award_activity(db_session, "acme", "u1", 10)

        assert result.total_xp == 105
        assert result.level_up is True
        assert result.old_level == 0
        assert result.new_level == 1
        assert result.new_badges == ["bronze"]
        assert await _notification_count(db_session, "u1") == 1

        state = await get_state(db_session, "acme", "u1")
        assert state.level_up_pending is True
        assert state.badge_bronze is True

    @pytest.mark.asyncio
    async def test_multi_level_jump_logs_one_notification(self, db_session: AsyncSession):
        result = await award_quest_reward(db_session, "acme", "u1", 1500)
        assert result.level == 5
        assert result.new_badges == ["bronze", "silver"]
        assert await _notification_count(db_session, "u1") == 1
        [notification] = await get_unseen_level_ups(db_session, "acme", "u1")
        assert notification["level"] == 5
        assert notification["xp"] == 1500

    @pytest.mark.asyncio
    async def test_no_level_change_no_notification(self, db_session: AsyncSession):
        await award_activity(db_session, "acme", "u1", 50)
        await award_activity(db_session, "acme", "u1", 20)
        assert await _notification_count(db_session, "u1") == 0

    @pytest.mark.asyncio
    async def test_reward_leaves_counters_alone(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 10)
        state = await get_state(db_session, "acme", "u1")
        assert state.total_xp == 10
        assert state.messages_sent == 0

    @pytest.mark.asyncio
    async def test_award_reconciles_apex(self, db_session: AsyncSession):
        state = await get_or_create_state(db_session, "acme", "u1")
        state.roles = ["apex-role"]
        await update_tenant_settings(db_session, "acme", {"apex_role_id": "apex-role"})
        result = await award_activity(db_session, "acme", "u1", 5)
        assert result.new_badges == ["apex"]


class TestGrantXP:
    @pytest.mark.asyncio
    async def test_grant_applies_reward(self, db_session: AsyncSession):
        result = await grant_xp(db_session, "acme", "u1", 300)
        assert result.level == 2

    @pytest.mark.asyncio
    async def test_grant_must_be_positive(self, db_session: AsyncSession):
        with pytest.raises(ValueError):
            await grant_xp(db_session, "acme", "u1", 0)


class TestLevelUpNotifications:
    """Seen/unseen bookkeeping for the level-up log."""

    @pytest.mark.asyncio
    async def test_oldest_first(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 100)
        await award_quest_reward(db_session, "acme", "u1", 200)
        levels = [n["level"] for n in await get_unseen_level_ups(db_session, "acme", "u1")]
        assert levels == [1, 2]

    @pytest.mark.asyncio
    async def test_mark_one_seen(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 100)
        [notification] = await get_unseen_level_ups(db_session, "acme", "u1")
        await mark_level_up_seen(db_session, "acme", "u1", notification["id"])
        assert await get_unseen_level_ups(db_session, "acme", "u1") == []

    @pytest.mark.asyncio
    async def test_mark_other_users_notification_rejected(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 100)
        [notification] = await get_unseen_level_ups(db_session, "acme", "u1")
        with pytest.raises(NotFoundError):
            await mark_level_up_seen(db_session, "acme", "u2", notification["id"])

    @pytest.mark.asyncio
    async def test_mark_all_seen(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 100)
        await award_quest_reward(db_session, "acme", "u1", 200)
        assert await mark_all_level_ups_seen(db_session, "acme", "u1") == 2
        assert await get_unseen_level_ups(db_session, "acme", "u1") == []

    @pytest.mark.asyncio
    async def test_acknowledge_pending(self, db_session: AsyncSession):
        await award_quest_reward(db_session, "acme", "u1", 100)
        await acknowledge_level_up_pending(db_session, "acme", "u1")
        state = await get_state(db_session, "acme", "u1")
        assert state.level_up_pending is False

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_user(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await acknowledge_level_up_pending(db_session, "acme", "ghost")
