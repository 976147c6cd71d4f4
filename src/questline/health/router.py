"""Health, readiness and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from questline.config import get_settings
from questline.database import Database
from questline.dependencies import get_broadcaster, get_database
from questline.progression.events import Broadcaster

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is up."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    database: Database = Depends(get_database),  # noqa: B008
    broadcaster: Broadcaster = Depends(get_broadcaster),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks the document store and, when configured, Redis."""
    checks: dict[str, object] = {}

    try:
        async with database.session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if broadcaster.client is None:
        checks["redis"] = "disabled"
    else:
        try:
            await broadcaster.client.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
