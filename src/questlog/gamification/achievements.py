"""Achievement evaluation: turns progression signals into unlock rows."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from questlog.gamification.experience import compute_level
from questlog.gamification.seed import ACHIEVEMENT_TYPES
from questlog.storage.base import AchievementRecord, ProgressionStore, UserRecord

logger = structlog.get_logger()


def progression_signals(user: UserRecord, completed_count: int) -> dict[str, int]:
    """Current value of each achievement trigger type for a user.

    The level signal is derived from experience rather than read from the
    stored counter.
    """
    return {
        "tasks_completed": completed_count,
        "streak": user.streak_days,
        "level": compute_level(user.experience),
    }


class AchievementEvaluator:
    """Unlocks every catalog entry a user currently qualifies for.

    Safe to run any number of times: thresholds are compared with ``<=`` so
    skipped thresholds are caught up, and already-unlocked entries are never
    inserted again.
    """

    def __init__(self, store: ProgressionStore) -> None:
        self.store = store

    async def evaluate(self, user: UserRecord, now: datetime | None = None) -> list[AchievementRecord]:
        """Evaluate all trigger types. Returns achievements unlocked by this call."""
        if now is None:
            now = datetime.now(timezone.utc)

        completed_count = await self.store.count_tasks(user.id, completed=True)
        signals = progression_signals(user, completed_count)

        unlocked: list[AchievementRecord] = []
        for achievement_type in ACHIEVEMENT_TYPES:
            unlocked += await self.store.unlock_achievements(
                user.id, achievement_type, signals[achievement_type], now
            )

        if unlocked:
            logger.info(
                "achievements_unlocked",
                user_id=user.id,
                achievements=[a.name for a in unlocked],
                **signals,
            )
        return unlocked
