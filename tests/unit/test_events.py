"""Broadcast tests: payloads, skipped empties and swallowed Redis failures."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from questline.progression.events import (
    BADGE_UNLOCKED_CHANNEL,
    LEVEL_UP_CHANNEL,
    QUEST_COMPLETED_CHANNEL,
    Broadcaster,
    create_redis,
)


class TestCreateRedis:
    def test_empty_url_disables(self) -> None:
        assert create_redis("") is None

    def test_builds_client(self) -> None:
        client = create_redis("redis://localhost:6379/0")
        assert client is not None


class TestBroadcaster:
    @pytest.mark.asyncio
    async def test_no_client_is_noop(self) -> None:
        broadcaster = Broadcaster(None)
        assert await broadcaster.publish_level_up("acme", "u1", 0, 1, 105) is False

    @pytest.mark.asyncio
    async def test_level_up_payload(self) -> None:
        redis = AsyncMock()
        broadcaster = Broadcaster(redis)

        assert await broadcaster.publish_level_up("acme", "u1", 0, 1, 105) is True
        channel, raw = redis.publish.call_args.args
        assert channel == LEVEL_UP_CHANNEL
        assert json.loads(raw) == {
            "company_id": "acme",
            "user_id": "u1",
            "old_level": 0,
            "new_level": 1,
            "total_xp": 105,
        }

    @pytest.mark.asyncio
    async def test_badges_and_quests(self) -> None:
        redis = AsyncMock()
        broadcaster = Broadcaster(redis)

        await broadcaster.publish_badges_unlocked("acme", "u1", ["bronze"])
        await broadcaster.publish_quest_completed("acme", "u1", ["daily_send10"])
        channels = [call.args[0] for call in redis.publish.call_args_list]
        assert channels == [BADGE_UNLOCKED_CHANNEL, QUEST_COMPLETED_CHANNEL]

    @pytest.mark.asyncio
    async def test_empty_lists_not_published(self) -> None:
        redis = AsyncMock()
        broadcaster = Broadcaster(redis)

        assert await broadcaster.publish_badges_unlocked("acme", "u1", []) is False
        assert await broadcaster.publish_quest_completed("acme", "u1", []) is False
        redis.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_failure_swallowed(self) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        broadcaster = Broadcaster(redis)

        assert await broadcaster.publish_level_up("acme", "u1", 4, 5, 1500) is False

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        redis = AsyncMock()
        broadcaster = Broadcaster(redis)
        await broadcaster.close()
        redis.aclose.assert_awaited_once()
        assert broadcaster.client is None
