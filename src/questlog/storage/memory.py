"""In-memory progression store.

Used by the test suite and by ``QL_STORAGE_BACKEND=memory`` for local runs.
State lives for the lifetime of the process. Each user's read-modify-write
sequences run under that user's ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from questlog.errors import ConflictError, NotFoundError
from questlog.gamification.experience import compute_level
from questlog.storage.base import (
    UPDATABLE_TASK_FIELDS,
    AchievementRecord,
    CompletionOutcome,
    TaskRecord,
    UnlockedAchievementRecord,
    UserRecord,
)


class InMemoryProgressionStore:
    """Dict-backed implementation of ``ProgressionStore``."""

    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._tasks: dict[int, TaskRecord] = {}
        self._achievements: dict[int, AchievementRecord] = {}
        self._unlocked: dict[int, dict[int, datetime]] = defaultdict(dict)  # user_id -> {achievement_id: at}
        self._user_ids = itertools.count(1)
        self._task_ids = itertools.count(1)
        self._achievement_ids = itertools.count(1)
        self._locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._users_lock = asyncio.Lock()

    # ── Users ──

    async def create_user(self, username: str, email: str, password_hash: str) -> UserRecord:
        async with self._users_lock:
            for existing in self._users.values():
                if existing.username == username or existing.email.lower() == email.lower():
                    raise ConflictError("Username or email already exists")
            user = UserRecord(
                id=next(self._user_ids),
                username=username,
                email=email.lower(),
                password_hash=password_hash,
                created_at=datetime.now(timezone.utc),
            )
            self._users[user.id] = user
        return replace(user)

    async def get_user(self, user_id: int) -> UserRecord | None:
        user = self._users.get(user_id)
        return replace(user) if user else None

    async def get_user_by_login(self, login: str) -> UserRecord | None:
        for user in self._users.values():
            if user.username == login or user.email == login.lower():
                return replace(user)
        return None

    async def record_login(
        self,
        user_id: int,
        last_login: datetime,
        streak_days: int,
        password_hash: str | None = None,
    ) -> None:
        async with self._locks[user_id]:
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError("User not found")
            user.last_login = last_login
            user.streak_days = streak_days
            if password_hash is not None:
                user.password_hash = password_hash

    # ── Tasks ──

    async def create_task(self, user_id: int, **fields: Any) -> TaskRecord:
        if user_id not in self._users:
            raise NotFoundError("User not found")
        task = TaskRecord(
            id=next(self._task_ids),
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
            **fields,
        )
        self._tasks[task.id] = task
        return replace(task, tags=list(task.tags))

    async def list_tasks(self, user_id: int, completed: bool | None = None) -> list[TaskRecord]:
        tasks = [
            t for t in self._tasks.values()
            if t.user_id == user_id and (completed is None or t.completed == completed)
        ]
        # Newest first; ids break ties between tasks created in the same instant
        tasks.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return [replace(t, tags=list(t.tags)) for t in tasks]

    async def get_task(self, user_id: int, task_id: int) -> TaskRecord | None:
        task = self._owned_task(user_id, task_id)
        return replace(task, tags=list(task.tags)) if task else None

    async def update_task(self, user_id: int, task_id: int, changes: dict[str, Any]) -> TaskRecord | None:
        async with self._locks[user_id]:
            task = self._owned_task(user_id, task_id)
            if task is None:
                return None
            for key, value in changes.items():
                if key in UPDATABLE_TASK_FIELDS:
                    setattr(task, key, value)
            return replace(task, tags=list(task.tags))

    async def delete_task(self, user_id: int, task_id: int) -> bool:
        async with self._locks[user_id]:
            if self._owned_task(user_id, task_id) is None:
                return False
            del self._tasks[task_id]
            return True

    async def count_tasks(self, user_id: int, completed: bool | None = None) -> int:
        return sum(
            1 for t in self._tasks.values()
            if t.user_id == user_id and (completed is None or t.completed == completed)
        )

    async def complete_task(self, user_id: int, task_id: int, completed_at: datetime) -> CompletionOutcome:
        async with self._locks[user_id]:
            task = self._owned_task(user_id, task_id)
            if task is None:
                raise NotFoundError("Task not found")
            if task.completed:
                raise ConflictError("Task already completed")
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError("User not found")

            old_experience = user.experience
            new_experience = old_experience + task.experience_points

            task.completed = True
            task.completed_at = completed_at
            user.experience = new_experience
            user.level = max(user.level, compute_level(new_experience))

            return CompletionOutcome(
                task=replace(task, tags=list(task.tags)),
                old_experience=old_experience,
                new_experience=new_experience,
                level=user.level,
            )

    def _owned_task(self, user_id: int, task_id: int) -> TaskRecord | None:
        task = self._tasks.get(task_id)
        if task is None or task.user_id != user_id:
            return None
        return task

    # ── Achievements ──

    async def seed_achievements(self, entries: list[dict[str, Any]]) -> int:
        by_name = {a.name: a for a in self._achievements.values()}
        for entry in entries:
            existing = by_name.get(entry["name"])
            achievement_id = existing.id if existing else next(self._achievement_ids)
            self._achievements[achievement_id] = AchievementRecord(id=achievement_id, **entry)
        return len(entries)

    async def list_achievements(self) -> list[AchievementRecord]:
        return sorted(self._achievements.values(), key=lambda a: (a.type, a.required_value, a.id))

    async def unlock_achievements(
        self,
        user_id: int,
        achievement_type: str,
        value: int,
        unlocked_at: datetime,
    ) -> list[AchievementRecord]:
        async with self._locks[user_id]:
            unlocked = self._unlocked[user_id]
            newly = [
                a for a in await self.list_achievements()
                if a.type == achievement_type and a.required_value <= value and a.id not in unlocked
            ]
            for achievement in newly:
                unlocked[achievement.id] = unlocked_at
        return newly

    async def list_unlocked(self, user_id: int) -> list[UnlockedAchievementRecord]:
        rows = [
            UnlockedAchievementRecord(achievement=self._achievements[aid], unlocked_at=at)
            for aid, at in self._unlocked.get(user_id, {}).items()
            if aid in self._achievements
        ]
        rows.sort(key=lambda r: (r.unlocked_at, r.achievement.id))
        return rows
