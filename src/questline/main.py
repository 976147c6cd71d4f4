"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from questline.admin.router import router as admin_router
from questline.config import get_settings
from questline.database import Database
from questline.health.router import router as health_router
from questline.middleware import setup_middleware
from questline.progression.events import Broadcaster, create_redis
from questline.progression.router import router as progression_router
from questline.users.directory import DirectoryClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the store, broadcaster and directory client once per process."""
    settings = get_settings()
    app.state.database = Database.from_settings(settings)
    app.state.broadcaster = Broadcaster(create_redis(settings.redis_url))
    app.state.directory = DirectoryClient.from_settings(settings)

    yield

    await app.state.directory.close()
    await app.state.broadcaster.close()
    await app.state.database.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Questline API",
        description="Progression engine: XP, levels, badges and daily/weekly quests",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progression_router)
    app.include_router(admin_router)

    return app


app = create_app()
