"""Client for the external member directory (profile provider)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from questline.config import Settings

logger = structlog.get_logger()


class DirectoryClient:
    """Fetches ``{username, name, avatar_url}`` for a member id.

    One instance, and one pooled ``httpx.AsyncClient``, lives for the whole
    process; ``close`` releases the connections. Every failure is logged and
    reported as ``None``; callers fall back to the cached profile.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.http = httpx.AsyncClient(transport=transport, timeout=timeout, headers=headers)

    @classmethod
    def from_settings(cls, settings: Settings) -> DirectoryClient:
        return cls(
            settings.directory_api_url,
            api_key=settings.directory_api_key,
            timeout=settings.directory_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def close(self) -> None:
        await self.http.aclose()

    async def fetch_user(self, user_id: str) -> dict[str, Any] | None:
        if not self.enabled:
            return None

        try:
            response = await self.http.get(f"{self.base_url}/users/{user_id}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning("directory_lookup_failed", user_id=user_id, exc_info=True)
            return None

        picture = data.get("profile_picture") or {}
        return {
            "username": data.get("username") or "unknown",
            "name": data.get("name") or "Unknown User",
            "avatar_url": data.get("avatar_url") or picture.get("source_url"),
        }
