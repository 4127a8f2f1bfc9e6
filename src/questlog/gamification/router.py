"""Gamification API endpoints: stats snapshot and achievement catalog."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from questlog.auth.dependencies import get_current_user
from questlog.dependencies import get_engine, get_store
from questlog.gamification.engine import ProgressionEngine
from questlog.gamification.schemas import (
    AchievementCatalogResponse,
    AchievementResponse,
    StatsResponse,
    UnlockedAchievementResponse,
)
from questlog.storage.base import ProgressionStore, UserRecord

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.get("/achievements", response_model=AchievementCatalogResponse)
async def list_achievements(store: ProgressionStore = Depends(get_store)):
    """Full achievement catalog."""
    achievements = await store.list_achievements()
    return AchievementCatalogResponse(
        achievements=[AchievementResponse.model_validate(a) for a in achievements]
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    user: UserRecord = Depends(get_current_user),
    engine: ProgressionEngine = Depends(get_engine),
):
    """Current user's progression snapshot, after unlocking anything now due."""
    stats = await engine.compute_stats(user.id)
    return StatsResponse(
        username=stats.username,
        level=stats.level,
        experience=stats.experience,
        streak_days=stats.streak_days,
        experience_to_next_level=stats.experience_to_next_level,
        experience_into_level=stats.experience_into_level,
        completed_count=stats.completed_count,
        total_tasks=stats.total_tasks,
        unlocked_achievements=[
            UnlockedAchievementResponse(
                name=u.name,
                description=u.description,
                icon=u.icon,
                unlocked_at=u.unlocked_at,
            )
            for u in stats.unlocked_achievements
        ],
    )
