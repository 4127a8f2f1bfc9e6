"""Shared test fixtures.

The API runs against the in-memory store and an in-process Redis double, so
the suite needs no external services.
"""

from __future__ import annotations

import functools
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from questlog import redis_client
from questlog.dependencies import get_store
from questlog.gamification.seed import seed_achievements
from questlog.main import create_app
from questlog.storage.memory import InMemoryProgressionStore

TEST_PASSWORD = "SecureP4ss"


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for counters and rate limiting."""

    def __init__(self) -> None:
        self.data: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        value = self.data.get(key)
        return None if value is None else str(value)

    async def incr(self, key: str) -> int:
        self.data[key] = self.data.get(key, 0) + 1
        return self.data[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return key in self.data

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self)


class _FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self.redis = redis
        self.ops: list[tuple[str, tuple[Any, ...]]] = []

    def incr(self, key: str) -> _FakePipeline:
        self.ops.append(("incr", (key,)))
        return self

    def expire(self, key: str, seconds: int) -> _FakePipeline:
        self.ops.append(("expire", (key, seconds)))
        return self

    async def execute(self) -> list[Any]:
        results = [await getattr(self.redis, name)(*args) for name, args in self.ops]
        self.ops = []
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def store() -> InMemoryProgressionStore:
    """Fresh in-memory store with the achievement catalog seeded."""
    s = InMemoryProgressionStore()
    await seed_achievements(s)
    return s


@pytest_asyncio.fixture
async def client(
    store: InMemoryProgressionStore,
    fake_redis: FakeRedis,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client wired to the in-memory store and Redis double."""
    monkeypatch.setattr(redis_client, "_client", fake_redis)

    app = create_app()
    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client: AsyncClient, username: str = "alice", email: str | None = None) -> dict:
    """Register a user and return its credentials and token."""
    response = await client.post("/api/v1/auth/register", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": TEST_PASSWORD,
    })
    assert response.status_code == 201, response.text
    data = response.json()
    return {
        "username": username,
        "password": TEST_PASSWORD,
        "user_id": data["user"]["id"],
        "access_token": data["accessToken"],
    }


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict:
    return await _register(client)


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, registered_user: dict) -> AsyncClient:
    """Client carrying a bearer token for ``registered_user``."""
    client.headers["Authorization"] = f"Bearer {registered_user['access_token']}"
    return client


@pytest.fixture
def register(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Register further users: ``await register("bob")``."""
    return functools.partial(_register, client)
