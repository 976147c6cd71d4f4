"""Pydantic request/response models for member-facing progression endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


# --- Profile ---


class LevelInfoResponse(BaseModel):
    level: int
    xp: int
    current_level_xp: int
    next_level_xp: int
    xp_into_level: int
    xp_for_level: int
    progress: float


class BadgeResponse(BaseModel):
    key: str
    name: str
    emoji: str
    description: str
    unlocked: bool


class BadgeFlags(BaseModel):
    bronze: bool = False
    silver: bool = False
    gold: bool = False
    platinum: bool = False
    apex: bool = False


class UserStats(BaseModel):
    messages: int = 0
    success_messages: int = 0
    voice_minutes: int = 0


class ProfileUser(BaseModel):
    user_id: str
    username: str
    name: str
    avatar_url: str | None = None
    level: int
    xp: int
    points: int = 0
    badges: BadgeFlags
    roles: list[str] = []
    stats: UserStats
    level_up_pending: bool = False


class ProfileResponse(BaseModel):
    user: ProfileUser
    level_info: LevelInfoResponse
    badges: list[BadgeResponse]


# --- Activity ---


class ActivityRequest(BaseModel):
    success: bool = False


class AwardResponse(BaseModel):
    total_xp: int
    level: int
    level_up: bool
    new_level: int | None = None
    new_badges: list[str] = []


class ActivityResponse(AwardResponse):
    completed_objectives: list[str] = []


# --- Quests ---


class ObjectiveView(BaseModel):
    id: str
    title: str
    description: str
    progress: int
    target: int
    completed: bool
    claimed: bool
    xp: int
    order: int


class QuestView(BaseModel):
    quest_id: str
    title: str
    description: str
    period_key: str
    objectives: list[ObjectiveView]
    unread: int
    seen: bool


class QuestsResponse(BaseModel):
    daily: QuestView | None = None
    weekly: QuestView | None = None


class ClaimRequest(BaseModel):
    objective_id: str


class ClaimResponse(AwardResponse):
    objective_id: str
    quest_type: str
    xp_reward: int


class QuestSeenRequest(BaseModel):
    quest_type: Literal["daily", "weekly"]


# --- Level-ups ---


class LevelUpItem(BaseModel):
    id: int
    level: int
    xp: int
    seen: bool
    created_at: datetime


class LevelUpsResponse(BaseModel):
    notifications: list[LevelUpItem]
    level_up_pending: bool = False


class MarkedSeenResponse(BaseModel):
    success: bool = True
    updated: int = 0


# --- Leaderboard ---


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    username: str
    name: str
    avatar_url: str | None = None
    level: int
    xp: int
    badges: BadgeFlags
    stats: UserStats


class LeaderboardResponse(BaseModel):
    users: list[LeaderboardEntry]
    total_count: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool
