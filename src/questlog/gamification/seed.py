"""Achievement catalog seed data."""

from __future__ import annotations

import structlog

from questlog.storage.base import ProgressionStore

logger = structlog.get_logger()

ACHIEVEMENT_TYPES: tuple[str, ...] = ("tasks_completed", "streak", "level")

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Task milestones
    {
        "name": "First Step",
        "description": "Complete your first task",
        "icon": "\U0001f3af",
        "type": "tasks_completed",
        "required_value": 1,
    },
    {
        "name": "Task Master",
        "description": "Complete 10 tasks",
        "icon": "\U0001f4aa",
        "type": "tasks_completed",
        "required_value": 10,
    },
    {
        "name": "Unstoppable",
        "description": "Complete 50 tasks",
        "icon": "\U0001f680",
        "type": "tasks_completed",
        "required_value": 50,
    },
    # Streaks
    {
        "name": "Week Warrior",
        "description": "7 day streak",
        "icon": "\U0001f525",
        "type": "streak",
        "required_value": 7,
    },
    {
        "name": "Month Master",
        "description": "30 day streak",
        "icon": "⚡",
        "type": "streak",
        "required_value": 30,
    },
    # Levels
    {
        "name": "Level 5",
        "description": "Reach level 5",
        "icon": "⭐",
        "type": "level",
        "required_value": 5,
    },
    {
        "name": "Level 10",
        "description": "Reach level 10",
        "icon": "\U0001f31f",
        "type": "level",
        "required_value": 10,
    },
]


async def seed_achievements(store: ProgressionStore) -> int:
    """Upsert the catalog. Returns number of entries seeded."""
    seeded = await store.seed_achievements(ACHIEVEMENT_SEED_DATA)
    logger.info("achievements_seeded", count=seeded)
    return seeded
