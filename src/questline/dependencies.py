"""FastAPI dependencies: store, broadcaster, directory and caller identity."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request

from questline.config import get_settings
from questline.database import Database
from questline.progression.events import Broadcaster
from questline.users.directory import DirectoryClient
from questline.users.service import is_admin


@dataclass(frozen=True)
class Identity:
    """The caller, as asserted by the trusted fronting proxy."""

    user_id: str
    company_id: str


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_directory(request: Request) -> DirectoryClient | None:
    return getattr(request.app.state, "directory", None)


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_company_id: str | None = Header(default=None),
) -> Identity:
    """Read the caller from ``X-User-Id`` / ``X-Company-Id``. Raises 401 without a user id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    company_id = (x_company_id or "").strip() or get_settings().company_id
    return Identity(user_id=x_user_id.strip(), company_id=company_id)


async def require_admin(
    identity: Identity = Depends(get_identity),
    database: Database = Depends(get_database),
) -> Identity:
    """Raise 403 unless the caller holds an admin role."""
    if not await database.run(is_admin, identity.company_id, identity.user_id):
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
