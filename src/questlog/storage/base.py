"""Storage interface shared by the SQL and in-memory backends.

Stores return plain records, never ORM instances, so callers behave the same
whichever backend is injected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


@dataclass
class UserRecord:
    id: int
    username: str
    email: str
    password_hash: str
    level: int = 1
    experience: int = 0
    streak_days: int = 0
    last_login: datetime | None = None
    created_at: datetime | None = None


@dataclass
class TaskRecord:
    id: int
    user_id: int
    title: str
    description: str | None = None
    priority: str = "medium"
    difficulty: str = "medium"
    experience_points: int = 10
    completed: bool = False
    completed_at: datetime | None = None
    due_date: datetime | None = None
    category: str = "general"
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None


@dataclass(frozen=True)
class AchievementRecord:
    id: int
    name: str
    description: str
    icon: str
    type: str
    required_value: int


@dataclass(frozen=True)
class UnlockedAchievementRecord:
    achievement: AchievementRecord
    unlocked_at: datetime

    @property
    def name(self) -> str:
        return self.achievement.name

    @property
    def description(self) -> str:
        return self.achievement.description

    @property
    def icon(self) -> str:
        return self.achievement.icon


@dataclass(frozen=True)
class CompletionOutcome:
    """What the atomic mark-complete-and-award unit changed.

    ``new_experience`` and ``level`` are read back from the same write that
    applied the award, so ``old_experience`` is exact even under concurrency.
    """

    task: TaskRecord
    old_experience: int
    new_experience: int
    level: int


# Fields a task owner may change after creation.
UPDATABLE_TASK_FIELDS = frozenset({"title", "description", "priority", "due_date", "category", "tags"})


class ProgressionStore(Protocol):
    """Persistence operations needed by the progression engine and the API."""

    # --- Users ---

    async def create_user(self, username: str, email: str, password_hash: str) -> UserRecord:
        """Insert a user. Raises ConflictError if username or email is taken."""
        ...

    async def get_user(self, user_id: int) -> UserRecord | None: ...

    async def get_user_by_login(self, login: str) -> UserRecord | None:
        """Look up by exact username or case-insensitive email."""
        ...

    async def record_login(
        self,
        user_id: int,
        last_login: datetime,
        streak_days: int,
        password_hash: str | None = None,
    ) -> None: ...

    # --- Tasks ---

    async def create_task(self, user_id: int, **fields: Any) -> TaskRecord: ...

    async def list_tasks(self, user_id: int, completed: bool | None = None) -> list[TaskRecord]: ...

    async def get_task(self, user_id: int, task_id: int) -> TaskRecord | None: ...

    async def update_task(self, user_id: int, task_id: int, changes: dict[str, Any]) -> TaskRecord | None: ...

    async def delete_task(self, user_id: int, task_id: int) -> bool: ...

    async def count_tasks(self, user_id: int, completed: bool | None = None) -> int: ...

    async def complete_task(self, user_id: int, task_id: int, completed_at: datetime) -> CompletionOutcome:
        """Mark the task complete and award its XP as one committed unit.

        Raises NotFoundError if the task is absent or not owned by ``user_id``,
        ConflictError if it is already completed. Nothing is written in either
        case.
        """
        ...

    # --- Achievements ---

    async def seed_achievements(self, entries: list[dict[str, Any]]) -> int: ...

    async def list_achievements(self) -> list[AchievementRecord]: ...

    async def unlock_achievements(
        self,
        user_id: int,
        achievement_type: str,
        value: int,
        unlocked_at: datetime,
    ) -> list[AchievementRecord]:
        """Unlock every entry of ``achievement_type`` with required_value <= value.

        Returns only the entries newly unlocked by this call.
        """
        ...

    async def list_unlocked(self, user_id: int) -> list[UnlockedAchievementRecord]: ...
