"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Depends

from questlog.config import get_settings
from questlog.database import get_session
from questlog.gamification.engine import ProgressionEngine
from questlog.redis_client import get_redis as _get_redis
from questlog.storage.base import ProgressionStore
from questlog.storage.memory import InMemoryProgressionStore
from questlog.storage.sql import SqlProgressionStore

_memory_store: InMemoryProgressionStore | None = None


def get_memory_store() -> InMemoryProgressionStore:
    """Process-wide in-memory store, created on first use."""
    global _memory_store  # noqa: PLW0603
    if _memory_store is None:
        _memory_store = InMemoryProgressionStore()
    return _memory_store


async def get_store() -> AsyncGenerator[ProgressionStore, None]:
    """Yield the configured store; SQL stores get a request-scoped session."""
    if get_settings().storage_backend == "memory":
        yield get_memory_store()
        return
    async for session in get_session():
        yield SqlProgressionStore(session)


def get_engine(store: ProgressionStore = Depends(get_store)) -> ProgressionEngine:
    """Progression engine bound to the request's store."""
    return ProgressionEngine(store)


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield _get_redis()
