"""ORM models for the progression store.

Every mutable document carries a ``version`` column wired to SQLAlchemy's
``version_id_col``: an UPDATE whose version no longer matches raises
``StaleDataError`` and the transaction is re-run by ``Database.run``.
JSON columns are always reassigned, never mutated in place.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from questline.db.base import Base

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite.
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONDoc = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserProgression(Base):
    """Per-user, per-tenant progression state. ``level`` is a cache of level_for_xp(total_xp)."""

    __tablename__ = "user_progression"
    __table_args__ = (
        UniqueConstraint("company_id", "user_id", name="uq_user_progression_company_user"),
        Index("idx_user_progression_ranking", "company_id", "total_xp", "level"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[str] = mapped_column(String(128), nullable=False, default="unknown")
    name: Mapped[str] = mapped_column(String(128), nullable=False, default="Unknown User")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    messages_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_messages_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voice_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    badge_bronze: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    badge_silver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    badge_gold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    badge_platinum: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    badge_apex: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    roles: Mapped[list[str]] = mapped_column(JSONDoc, nullable=False, default=list)
    level_up_pending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class LevelUpNotification(Base):
    """Append-only log: one row per level-up transition."""

    __tablename__ = "level_up_notifications"
    __table_args__ = (
        Index("idx_level_up_notifications_unseen", "company_id", "user_id", "seen"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Tenant configuration
# ---------------------------------------------------------------------------


class TenantSettings(Base):
    """Per-tenant gamification settings, created lazily from application defaults."""

    __tablename__ = "tenant_settings"

    company_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    apex_role_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    success_channel_ids: Mapped[list[str]] = mapped_column(JSONDoc, nullable=False, default=list)
    xp_per_message: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    xp_success_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    xp_cooldown_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class Role(Base):
    """Named role labels an admin can assign to users."""

    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_roles_company_name"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    color: Mapped[str] = mapped_column(String(16), nullable=False, default="#6366f1")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class Quest(Base):
    """Quest catalog entry: an ordered list of objective definitions for one cadence."""

    __tablename__ = "quests"
    __table_args__ = (
        UniqueConstraint("company_id", "quest_id", name="uq_quests_company_quest"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quest_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quest_type: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    objectives: Mapped[list[dict[str, Any]]] = mapped_column(JSONDoc, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class QuestProgress(Base):
    """One user's objective counters for one quest type in one period (day or ISO week)."""

    __tablename__ = "quest_progress"
    __table_args__ = (
        UniqueConstraint(
            "company_id", "user_id", "quest_type", "period_key",
            name="uq_quest_progress_user_period",
        ),
        Index("idx_quest_progress_period", "company_id", "quest_type", "period_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quest_type: Mapped[str] = mapped_column(String(16), nullable=False)
    period_key: Mapped[str] = mapped_column(String(16), nullable=False)
    objectives: Mapped[list[dict[str, Any]]] = mapped_column(JSONDoc, nullable=False, default=list)
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012
