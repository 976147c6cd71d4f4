"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from questline.config import get_settings
from questline.database import Database
from questline.db.base import Base
from questline.db import models  # noqa: F401
from questline.progression.events import Broadcaster

COMPANY = "acme"

# Wednesday 2026-03-04 15:00 UTC = 10:00 America/New_York, ISO week 2026-W10.
FIXED_NOW = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Settings are cached process-wide; rebuild them around every test."""
    monkeypatch.setenv("QL_REDIS_URL", "")
    monkeypatch.setenv("QL_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """A file-backed SQLite store with the full schema, one per test."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'questline.db'}", max_retries=5)
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """A raw session on the test store. Tests commit explicitly."""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def company() -> str:
    return COMPANY


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster(None)


@pytest_asyncio.fixture
async def client(database: Database, broadcaster: Broadcaster) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the test store."""
    from questline.main import create_app

    app = create_app()
    app.state.database = database
    app.state.broadcaster = broadcaster
    app.state.directory = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
