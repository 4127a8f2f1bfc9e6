"""Owner-scoped task operations on top of the progression store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from questlog.errors import NotFoundError
from questlog.gamification.experience import award_for_difficulty, normalize_difficulty
from questlog.storage.base import ProgressionStore, TaskRecord

logger = structlog.get_logger()

# Fields that may be cleared with an explicit null.
NULLABLE_TASK_FIELDS = frozenset({"description", "due_date"})


async def create_task(
    store: ProgressionStore,
    user_id: int,
    title: str,
    description: str | None = None,
    priority: str = "medium",
    difficulty: str | None = None,
    due_date: datetime | None = None,
    category: str = "general",
    tags: list[str] | None = None,
) -> TaskRecord:
    """Create a task; its experience award is fixed here from the difficulty."""
    difficulty = normalize_difficulty(difficulty)
    task = await store.create_task(
        user_id,
        title=title,
        description=description,
        priority=priority,
        difficulty=difficulty,
        experience_points=award_for_difficulty(difficulty),
        due_date=due_date,
        category=category,
        tags=list(tags or []),
    )
    logger.info("task_created", user_id=user_id, task_id=task.id, difficulty=difficulty)
    return task


async def list_tasks(store: ProgressionStore, user_id: int, completed: bool | None = None) -> list[TaskRecord]:
    return await store.list_tasks(user_id, completed=completed)


async def get_task(store: ProgressionStore, user_id: int, task_id: int) -> TaskRecord:
    task = await store.get_task(user_id, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


async def update_task(
    store: ProgressionStore,
    user_id: int,
    task_id: int,
    changes: dict[str, Any],
) -> TaskRecord:
    """Apply a partial update. Nulls only clear the nullable fields."""
    changes = {k: v for k, v in changes.items() if v is not None or k in NULLABLE_TASK_FIELDS}
    task = await store.update_task(user_id, task_id, changes)
    if task is None:
        raise NotFoundError("Task not found")
    return task


async def delete_task(store: ProgressionStore, user_id: int, task_id: int) -> None:
    """Delete a task. Experience and achievements already earned are kept."""
    if not await store.delete_task(user_id, task_id):
        raise NotFoundError("Task not found")
    logger.info("task_deleted", user_id=user_id, task_id=task_id)
