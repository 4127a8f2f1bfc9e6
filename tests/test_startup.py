"""Startup tests: achievement catalog seeding."""

from collections.abc import AsyncGenerator

import pytest

from questlog import main
from questlog.gamification.seed import ACHIEVEMENT_SEED_DATA
from questlog.storage.memory import InMemoryProgressionStore


def _tracked_store(store, closed: list) -> AsyncGenerator:
    async def gen():
        try:
            yield store
        finally:
            closed.append(True)

    return gen()


@pytest.mark.asyncio
async def test_seed_catalog_closes_store_generator(monkeypatch: pytest.MonkeyPatch) -> None:
    store = InMemoryProgressionStore()
    closed: list = []
    monkeypatch.setattr(main, "get_store", lambda: _tracked_store(store, closed))

    await main.seed_catalog()

    assert closed == [True]
    assert len(await store.list_achievements()) == len(ACHIEVEMENT_SEED_DATA)


@pytest.mark.asyncio
async def test_seed_failure_is_logged_and_store_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    store = InMemoryProgressionStore()
    closed: list = []

    async def broken(*_args, **_kwargs):
        raise RuntimeError("down")

    monkeypatch.setattr(main, "seed_achievements", lambda s: broken())
    monkeypatch.setattr(main, "get_store", lambda: _tracked_store(store, closed))

    await main.seed_catalog()

    assert closed == [True]
