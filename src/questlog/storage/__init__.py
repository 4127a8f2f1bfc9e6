"""Storage backends for users, tasks and achievements."""

from questlog.storage.base import (
    AchievementRecord,
    CompletionOutcome,
    ProgressionStore,
    TaskRecord,
    UnlockedAchievementRecord,
    UserRecord,
)
from questlog.storage.memory import InMemoryProgressionStore
from questlog.storage.sql import SqlProgressionStore

__all__ = [
    "AchievementRecord",
    "CompletionOutcome",
    "InMemoryProgressionStore",
    "ProgressionStore",
    "SqlProgressionStore",
    "TaskRecord",
    "UnlockedAchievementRecord",
    "UserRecord",
]
