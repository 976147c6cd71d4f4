"""Best-effort Redis broadcast of progression events."""

from __future__ import annotations

import json
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)

LEVEL_UP_CHANNEL = "pubsub:level_up"
BADGE_UNLOCKED_CHANNEL = "pubsub:badge_unlocked"
QUEST_COMPLETED_CHANNEL = "pubsub:quest_completed"


def create_redis(url: str) -> redis.Redis | None:
    """Build a Redis client, or None when no URL is configured."""
    if not url:
        return None
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


class Broadcaster:
    """Publishes progression events. A missing or failing Redis never raises."""

    def __init__(self, client: redis.Redis | None = None) -> None:
        self.client = client

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def _publish(self, channel: str, payload: dict) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.publish(channel, json.dumps(payload))
        except Exception:
            logger.warning("Failed to publish %s broadcast", channel, exc_info=True)
            return False
        return True

    async def publish_level_up(self, company_id: str, user_id: str, old_level: int, new_level: int, total_xp: int) -> bool:
        return await self._publish(LEVEL_UP_CHANNEL, {
            "company_id": company_id,
            "user_id": user_id,
            "old_level": old_level,
            "new_level": new_level,
            "total_xp": total_xp,
        })

    async def publish_badges_unlocked(self, company_id: str, user_id: str, badges: list[str]) -> bool:
        if not badges:
            return False
        return await self._publish(BADGE_UNLOCKED_CHANNEL, {
            "company_id": company_id,
            "user_id": user_id,
            "badges": badges,
        })

    async def publish_quest_completed(self, company_id: str, user_id: str, objective_ids: list[str]) -> bool:
        if not objective_ids:
            return False
        return await self._publish(QUEST_COMPLETED_CHANNEL, {
            "company_id": company_id,
            "user_id": user_id,
            "objective_ids": objective_ids,
        })
