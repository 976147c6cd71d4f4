"""Progression tables.

Creates user_progression, level_up_notifications, tenant_settings, roles,
quests and quest_progress.

Revision ID: 001_progression_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- User Progression ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progression (
            id BIGSERIAL PRIMARY KEY,
            company_id VARCHAR(64) NOT NULL,
            user_id VARCHAR(64) NOT NULL,
            username VARCHAR(128) NOT NULL DEFAULT 'unknown',
            name VARCHAR(128) NOT NULL DEFAULT 'Unknown User',
            avatar_url TEXT,
            total_xp BIGINT NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 0,
            points INTEGER NOT NULL DEFAULT 0,
            messages_sent INTEGER NOT NULL DEFAULT 0,
            success_messages_sent INTEGER NOT NULL DEFAULT 0,
            voice_minutes INTEGER NOT NULL DEFAULT 0,
            badge_bronze BOOLEAN NOT NULL DEFAULT false,
            badge_silver BOOLEAN NOT NULL DEFAULT false,
            badge_gold BOOLEAN NOT NULL DEFAULT false,
            badge_platinum BOOLEAN NOT NULL DEFAULT false,
            badge_apex BOOLEAN NOT NULL DEFAULT false,
            roles JSONB NOT NULL DEFAULT '[]',
            level_up_pending BOOLEAN NOT NULL DEFAULT false,
            last_message_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            version INTEGER NOT NULL,
            CONSTRAINT uq_user_progression_company_user UNIQUE (company_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_progression_ranking
        ON user_progression(company_id, total_xp, level)
    """)

    # --- Level-up Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS level_up_notifications (
            id BIGSERIAL PRIMARY KEY,
            company_id VARCHAR(64) NOT NULL,
            user_id VARCHAR(64) NOT NULL,
            level INTEGER NOT NULL,
            xp BIGINT NOT NULL,
            seen BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_level_up_notifications_unseen
        ON level_up_notifications(company_id, user_id, seen)
    """)

    # --- Tenant Settings ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS tenant_settings (
            company_id VARCHAR(64) PRIMARY KEY,
            apex_role_id VARCHAR(128),
            success_channel_ids JSONB NOT NULL DEFAULT '[]',
            xp_per_message INTEGER NOT NULL DEFAULT 5,
            xp_success_bonus INTEGER NOT NULL DEFAULT 10,
            xp_cooldown_seconds INTEGER NOT NULL DEFAULT 30,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            version INTEGER NOT NULL
        )
    """)

    # --- Roles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS roles (
            id BIGSERIAL PRIMARY KEY,
            company_id VARCHAR(64) NOT NULL,
            name VARCHAR(64) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            color VARCHAR(16) NOT NULL DEFAULT '#6366f1',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_roles_company_name UNIQUE (company_id, name)
        )
    """)

    # --- Quests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id BIGSERIAL PRIMARY KEY,
            company_id VARCHAR(64) NOT NULL,
            quest_id VARCHAR(64) NOT NULL,
            quest_type VARCHAR(16) NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            objectives JSONB NOT NULL DEFAULT '[]',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            version INTEGER NOT NULL,
            CONSTRAINT uq_quests_company_quest UNIQUE (company_id, quest_id)
        )
    """)

    # --- Quest Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_progress (
            id BIGSERIAL PRIMARY KEY,
            company_id VARCHAR(64) NOT NULL,
            user_id VARCHAR(64) NOT NULL,
            quest_type VARCHAR(16) NOT NULL,
            period_key VARCHAR(16) NOT NULL,
            objectives JSONB NOT NULL DEFAULT '[]',
            seen BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            version INTEGER NOT NULL,
            CONSTRAINT uq_quest_progress_user_period UNIQUE (company_id, user_id, quest_type, period_key)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quest_progress_period
        ON quest_progress(company_id, quest_type, period_key)
    """)


def downgrade() -> None:
    for table in (
        "quest_progress",
        "quests",
        "roles",
        "tenant_settings",
        "level_up_notifications",
        "user_progression",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table}")  # noqa: S608
