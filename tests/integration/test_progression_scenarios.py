"""End-to-end progression flows through the ingest and claim entry points."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from questline.database import Database
from questline.progression.activity import claim_and_award, ingest_activity
from questline.progression.events import Broadcaster
from questline.progression.exceptions import AlreadyClaimed, NotCompleted
from questline.progression.quest_tracker import get_progress
from questline.progression.xp_ledger import award_quest_reward, get_state, get_unseen_level_ups

COMPANY = "acme"


def _objective(progress: dict, quest_type: str, objective_id: str) -> dict:
    return next(o for o in progress[quest_type]["objectives"] if o["id"] == objective_id)


class TestMessageFlow:
    """Ten plain messages at 5 XP each."""

    async def test_ten_messages(self, database: Database, broadcaster: Broadcaster, now):
        completed: list[str] = []
        for _ in range(10):
            outcome = await ingest_activity(database, broadcaster, COMPANY, "u1", False, 5, now)
            completed += outcome.completed_objectives

        assert outcome.award.total_xp == 50
        assert outcome.award.level == 0
        assert completed == ["daily_send10"]

        progress = await database.run(get_progress, COMPANY, "u1", now)
        assert _objective(progress, "daily", "daily_send10")["completed"] is True
        assert _objective(progress, "daily", "daily_send10")["claimed"] is False
        assert _objective(progress, "weekly", "weekly_send100")["progress"] == 10

        state = await database.run(get_state, COMPANY, "u1")
        assert state.messages_sent == 10
        assert state.success_messages_sent == 0

    async def test_tenant_rate_used_when_no_delta(self, database: Database, broadcaster: Broadcaster, now):
        plain = await ingest_activity(database, broadcaster, COMPANY, "u1", False, None, now)
        success = await ingest_activity(database, broadcaster, COMPANY, "u1", True, None, now)
        assert plain.award.total_xp == 5
        assert success.award.total_xp == 20


class TestClaimFlow:
    """A success message completes daily_success1; claiming pays 10 XP exactly once."""

    async def test_claim_pays_once(self, database: Database, broadcaster: Broadcaster, now):
        outcome = await ingest_activity(database, broadcaster, COMPANY, "u1", True, 0, now)
        assert outcome.completed_objectives == ["daily_success1"]

        claimed = await claim_and_award(database, broadcaster, COMPANY, "u1", "daily_success1", now)
        assert claimed.claim.xp_reward == 10
        assert claimed.award.total_xp == 10

        with pytest.raises(AlreadyClaimed):
            await claim_and_award(database, broadcaster, COMPANY, "u1", "daily_success1", now)

        state = await database.run(get_state, COMPANY, "u1")
        assert state.total_xp == 10

    async def test_open_objective_pays_nothing(self, database: Database, broadcaster: Broadcaster, now):
        await ingest_activity(database, broadcaster, COMPANY, "u1", False, 0, now)
        with pytest.raises(NotCompleted):
            await claim_and_award(database, broadcaster, COMPANY, "u1", "daily_send10", now)
        state = await database.run(get_state, COMPANY, "u1")
        assert state.total_xp == 0


class TestLevelUpFlow:
    """95 XP plus a 10 XP message crosses into level 1."""

    async def test_level_up_unlocks_bronze(self, database: Database, now):
        redis = AsyncMock()
        broadcaster = Broadcaster(redis)
        await database.run(award_quest_reward, COMPANY, "u1", 95, now)

        outcome = await ingest_activity(database, broadcaster, COMPANY, "u1", False, 10, now)
        assert outcome.award.total_xp == 105
        assert outcome.award.level == 1
        assert outcome.award.level_up is True
        assert outcome.award.new_badges == ["bronze"]

        notifications = await database.run(get_unseen_level_ups, COMPANY, "u1")
        assert len(notifications) == 1
        assert notifications[0]["level"] == 1
        assert notifications[0]["xp"] == 105

        state = await database.run(get_state, COMPANY, "u1")
        assert state.level_up_pending is True
        assert state.badge_bronze is True

        published = {call.args[0]: json.loads(call.args[1]) for call in redis.publish.call_args_list}
        assert published["pubsub:level_up"]["new_level"] == 1
        assert published["pubsub:badge_unlocked"]["badges"] == ["bronze"]

    async def test_claim_reward_can_level_up(self, database: Database, broadcaster: Broadcaster, now):
        await database.run(award_quest_reward, COMPANY, "u1", 95, now)
        await ingest_activity(database, broadcaster, COMPANY, "u1", True, 0, now)

        claimed = await claim_and_award(database, broadcaster, COMPANY, "u1", "daily_success1", now)
        assert claimed.award.total_xp == 105
        assert claimed.award.level_up is True
        assert claimed.award.new_level == 1
