"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from questlog.schemas import CamelModel

# --- Achievements ---


class AchievementResponse(CamelModel):
    id: int
    name: str
    description: str
    icon: str
    type: str
    required_value: int


class UnlockedAchievementResponse(CamelModel):
    name: str
    description: str
    icon: str
    unlocked_at: datetime


class AchievementCatalogResponse(CamelModel):
    achievements: list[AchievementResponse]


# --- Stats ---


class StatsResponse(CamelModel):
    username: str
    level: int
    experience: int
    streak_days: int
    experience_to_next_level: int
    experience_into_level: int
    completed_count: int
    total_tasks: int
    unlocked_achievements: list[UnlockedAchievementResponse]
