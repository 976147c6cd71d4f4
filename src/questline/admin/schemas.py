"""Pydantic models for administrative endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from questline.progression.schemas import BadgeFlags, UserStats


# --- Quests ---


class ObjectiveDefinition(BaseModel):
    id: str
    title: str = ""
    description: str = ""
    message_target: int = 0
    success_message_target: int = 0
    xp_reward: int = 0
    order: int = 0


class QuestResponse(BaseModel):
    quest_id: str
    quest_type: str
    title: str
    description: str
    is_active: bool
    objectives: list[ObjectiveDefinition]
    updated_at: datetime | None = None


class ObjectivePatch(BaseModel):
    id: str = Field(min_length=1)
    title: str | None = None
    description: str | None = None
    message_target: int | None = Field(default=None, ge=0)
    success_message_target: int | None = Field(default=None, ge=0)
    xp_reward: int | None = Field(default=None, ge=0)
    order: int | None = Field(default=None, ge=0)


class QuestUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    is_active: bool | None = None
    objectives: list[ObjectivePatch] | None = None


class MigrationReportResponse(BaseModel):
    scanned: int
    updated: int
    failed: int


class QuestUpdateResponse(BaseModel):
    quest: QuestResponse
    migration: MigrationReportResponse


# --- XP & badges ---


class GrantXPRequest(BaseModel):
    user_id: str = Field(min_length=1)
    amount: int = Field(gt=0)


class GrantXPResponse(BaseModel):
    user_id: str
    total_xp: int
    level: int
    level_up: bool
    new_badges: list[str] = []


class SetBadgeRequest(BaseModel):
    user_id: str = Field(min_length=1)
    badge: Literal["bronze", "silver", "gold", "platinum", "apex"]
    unlocked: bool


class SetBadgeResponse(BaseModel):
    user_id: str
    badge: str
    unlocked: bool
    changed: bool


# --- Roles ---


class RoleResponse(BaseModel):
    id: int
    name: str
    description: str
    color: str
    is_active: bool


class RoleCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: str = ""


class RoleUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=64)
    description: str | None = None


class UserRoleRequest(BaseModel):
    user_id: str = Field(min_length=1)
    role_name: str = Field(min_length=1)


class UserRolesResponse(BaseModel):
    success: bool = True
    roles: list[str]


# --- Users & tenant ---


class AdminUserEntry(BaseModel):
    user_id: str
    username: str
    name: str
    level: int
    xp: int
    badges: BadgeFlags
    roles: list[str]
    stats: UserStats
    created_at: datetime | None = None


class TenantSettingsResponse(BaseModel):
    company_id: str
    apex_role_id: str | None = None
    success_channel_ids: list[str] = []
    xp_per_message: int
    xp_success_bonus: int
    xp_cooldown_seconds: int


class TenantSettingsUpdateRequest(BaseModel):
    apex_role_id: str | None = None
    success_channel_ids: list[str] | None = None
    xp_per_message: int | None = Field(default=None, ge=0)
    xp_success_bonus: int | None = Field(default=None, ge=0)
    xp_cooldown_seconds: int | None = Field(default=None, ge=0)

    @field_validator("success_channel_ids", "xp_per_message", "xp_success_bonus", "xp_cooldown_seconds")
    @classmethod
    def reject_null(cls, v: object) -> object:
        """Only ``apex_role_id`` can be cleared; omit a field to leave it unchanged."""
        if v is None:
            msg = "may not be null"
            raise ValueError(msg)
        return v
