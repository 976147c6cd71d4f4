"""Quest catalog tests: default seed, validation, partial updates."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from questline.progression.exceptions import InvalidObjective
from questline.progression.quest_catalog import (
    DEFAULT_QUESTS,
    ensure_seeded,
    find_objective,
    get_active_catalog,
    get_quest,
    list_quests,
    update_quest,
    validate_objective,
)


class TestValidateObjective:
    """Exactly one counter dimension per objective."""

    def test_message_objective_ok(self):
        validate_objective({"id": "a", "message_target": 3, "success_message_target": 0, "xp_reward": 5, "order": 1})

    def test_success_objective_ok(self):
        validate_objective({"id": "a", "message_target": 0, "success_message_target": 2, "xp_reward": 5, "order": 1})

    def test_both_targets_rejected(self):
        with pytest.raises(InvalidObjective):
            validate_objective({"id": "a", "message_target": 3, "success_message_target": 2, "xp_reward": 5, "order": 1})

    def test_no_target_rejected(self):
        with pytest.raises(InvalidObjective):
            validate_objective({"id": "a", "message_target": 0, "success_message_target": 0, "xp_reward": 5, "order": 1})

    def test_negative_reward_rejected(self):
        with pytest.raises(InvalidObjective):
            validate_objective({"id": "a", "message_target": 1, "success_message_target": 0, "xp_reward": -5, "order": 1})

    def test_blank_id_rejected(self):
        with pytest.raises(InvalidObjective):
            validate_objective({"id": " ", "message_target": 1, "success_message_target": 0, "xp_reward": 5, "order": 1})

    def test_defaults_are_valid(self):
        for quest in DEFAULT_QUESTS:
            for objective in quest["objectives"]:
                validate_objective(objective)


class TestSeeding:
    @pytest.mark.asyncio
    async def test_seeds_daily_and_weekly(self, db_session: AsyncSession):
        assert await ensure_seeded(db_session, "acme") is True
        quests = await list_quests(db_session, "acme")
        assert {q.quest_id for q in quests} == {"daily_quest", "weekly_quest"}

        daily = await get_quest(db_session, "acme", "daily_quest")
        assert [o["id"] for o in daily.objectives] == ["daily_success1", "daily_send10"]
        assert daily.objectives[1]["message_target"] == 10
        assert daily.objectives[1]["xp_reward"] == 15

        weekly = await get_quest(db_session, "acme", "weekly_quest")
        assert [o["id"] for o in weekly.objectives] == ["weekly_send100", "weekly_success10"]
        assert weekly.objectives[1]["xp_reward"] == 50

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session: AsyncSession):
        await ensure_seeded(db_session, "acme")
        assert await ensure_seeded(db_session, "acme") is False
        assert len(await list_quests(db_session, "acme")) == 2

    @pytest.mark.asyncio
    async def test_active_catalog_skips_inactive(self, db_session: AsyncSession):
        await ensure_seeded(db_session, "acme")
        await update_quest(db_session, "acme", "weekly_quest", {"is_active": False})
        catalog = await get_active_catalog(db_session, "acme")
        assert set(catalog) == {"daily"}

    @pytest.mark.asyncio
    async def test_find_objective(self, db_session: AsyncSession):
        catalog = await get_active_catalog(db_session, "acme")
        quest, objective = find_objective(catalog, "weekly_success10")
        assert quest.quest_type == "weekly"
        assert objective["success_message_target"] == 10
        assert find_objective(catalog, "nope") is None


class TestUpdateQuest:
    """Partial updates of quest definitions."""

    @pytest.mark.asyncio
    async def test_unknown_quest(self, db_session: AsyncSession):
        assert await update_quest(db_session, "acme", "missing", {"title": "x"}) is False

    @pytest.mark.asyncio
    async def test_updates_quest_fields(self, db_session: AsyncSession):
        await ensure_seeded(db_session, "acme")
        assert await update_quest(db_session, "acme", "daily_quest", {"title": "Daily Grind"}) is True
        quest = await get_quest(db_session, "acme", "daily_quest")
        assert quest.title == "Daily Grind"
        assert quest.description == "Complete daily objectives in order"

    @pytest.mark.asyncio
    async def test_patches_objective_by_id(self, db_session: AsyncSession):
        await ensure_seeded(db_session, "acme")
        await update_quest(db_session, "acme", "daily_quest", {
            "objectives": [{"id": "daily_send10", "message_target": 20}],
        })
        quest = await get_quest(db_session, "acme", "daily_quest")
        send10 = next(o for o in quest.objectives if o["id"] == "daily_send10")
        assert send10["message_target"] == 20
        assert send10["xp_reward"] == 15

    @pytest.mark.asyncio
    async def test_appends_new_objective(self, db_session: AsyncSession):
        await ensure_seeded(db_session, "acme")
        await update_quest(db_session, "acme", "daily_quest", {
            "objectives": [{"id": "daily_send25", "title": "Send 25", "message_target": 25, "xp_reward": 30}],
        })
        quest = await get_quest(db_session, "acme", "daily_quest")
        assert [o["id"] for o in quest.objectives] == ["daily_success1", "daily_send10", "daily_send25"]
        assert quest.objectives[2]["order"] == 3

    @pytest.mark.asyncio
    async def test_rejects_two_targets(self, db_session: AsyncSession):
        await ensure_seeded(db_session, "acme")
        with pytest.raises(InvalidObjective):
            await update_quest(db_session, "acme", "daily_quest", {
                "objectives": [{"id": "daily_send10", "success_message_target": 3}],
            })
