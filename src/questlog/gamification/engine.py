"""Progression engine: task completion, achievement evaluation and stats."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from questlog.errors import NotFoundError
from questlog.gamification.achievements import AchievementEvaluator
from questlog.gamification.experience import is_level_up, level_progress
from questlog.storage.base import AchievementRecord, ProgressionStore, UnlockedAchievementRecord

logger = structlog.get_logger()


@dataclass(frozen=True)
class CompletionResult:
    experience_gained: int
    new_experience: int
    level_up: bool
    level: int
    achievements_unlocked: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StatsSnapshot:
    username: str
    level: int
    experience: int
    streak_days: int
    experience_to_next_level: int
    experience_into_level: int
    completed_count: int
    total_tasks: int
    unlocked_achievements: list[UnlockedAchievementRecord]


class ProgressionEngine:
    """Converts completion events into XP, levels and achievements.

    The store is injected; the engine holds no state of its own.
    """

    def __init__(self, store: ProgressionStore) -> None:
        self.store = store
        self.evaluator = AchievementEvaluator(store)

    async def complete_task(self, task_id: int, user_id: int) -> CompletionResult:
        """Complete a task and award its experience.

        Raises NotFoundError for a missing or foreign task and ConflictError
        if it was already completed. The mark-and-award unit is committed
        before achievements are evaluated, and evaluation failures do not
        fail the completion.
        """
        now = datetime.now(timezone.utc)
        outcome = await self.store.complete_task(user_id, task_id, now)

        experience_gained = outcome.task.experience_points
        level_up = is_level_up(outcome.old_experience, outcome.new_experience)

        logger.info(
            "task_completed",
            user_id=user_id,
            task_id=task_id,
            experience_gained=experience_gained,
            new_experience=outcome.new_experience,
        )
        if level_up:
            logger.info("level_up", user_id=user_id, new_level=outcome.level)

        unlocked = await self._evaluate_best_effort(user_id)

        return CompletionResult(
            experience_gained=experience_gained,
            new_experience=outcome.new_experience,
            level_up=level_up,
            level=outcome.level,
            achievements_unlocked=[a.name for a in unlocked],
        )

    async def evaluate_achievements(self, user_id: int) -> list[AchievementRecord]:
        """Unlock any achievements the user now qualifies for.

        Callable on its own, e.g. from a periodic sweep.
        """
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return await self.evaluator.evaluate(user)

    async def compute_stats(self, user_id: int) -> StatsSnapshot:
        """Profile, counts and unlocked achievements for one user.

        Achievement evaluation runs first so unlocks that are due show up in
        this same snapshot.
        """
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        await self._evaluate_best_effort(user_id)

        completed_count = await self.store.count_tasks(user_id, completed=True)
        total_tasks = await self.store.count_tasks(user_id)
        unlocked = await self.store.list_unlocked(user_id)
        progress = level_progress(user.experience)

        return StatsSnapshot(
            username=user.username,
            level=user.level,
            experience=user.experience,
            streak_days=user.streak_days,
            experience_to_next_level=progress["xp_to_next_level"],
            experience_into_level=progress["xp_into_level"],
            completed_count=completed_count,
            total_tasks=total_tasks,
            unlocked_achievements=unlocked,
        )

    async def _evaluate_best_effort(self, user_id: int) -> list[AchievementRecord]:
        try:
            return await self.evaluate_achievements(user_id)
        except Exception:
            logger.warning("achievement_evaluation_failed", user_id=user_id, exc_info=True)
            return []
