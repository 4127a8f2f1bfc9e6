"""Progression engine tests: completion transaction, stats and evaluation."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from questlog.errors import ConflictError, NotFoundError
from questlog.gamification.engine import ProgressionEngine
from questlog.gamification.experience import award_for_difficulty
from questlog.storage.base import UserRecord
from questlog.storage.memory import InMemoryProgressionStore


async def _task(store: InMemoryProgressionStore, user_id: int, difficulty: str) -> int:
    task = await store.create_task(
        user_id,
        title=f"{difficulty} quest",
        difficulty=difficulty,
        experience_points=award_for_difficulty(difficulty),
    )
    return task.id


@pytest_asyncio.fixture
async def user(store: InMemoryProgressionStore) -> UserRecord:
    return await store.create_user("hero", "hero@example.com", "x")


@pytest.fixture
def engine(store: InMemoryProgressionStore) -> ProgressionEngine:
    return ProgressionEngine(store)


class TestCompleteTask:
    @pytest.mark.asyncio
    async def test_awards_experience(self, store, engine, user):
        task_id = await _task(store, user.id, "hard")

        result = await engine.complete_task(task_id, user.id)

        assert result.experience_gained == 20
        assert result.new_experience == 20
        assert result.level_up is False
        assert result.level == 1
        assert result.achievements_unlocked == ["First Step"]

    @pytest.mark.asyncio
    async def test_marks_task_completed(self, store, engine, user):
        task_id = await _task(store, user.id, "easy")

        await engine.complete_task(task_id, user.id)

        task = await store.get_task(user.id, task_id)
        assert task.completed is True
        assert task.completed_at is not None

    @pytest.mark.asyncio
    async def test_end_to_end_level_up(self, store, engine, user):
        """epic -> hard -> medium -> hard lands exactly on level 2."""
        results = []
        for difficulty in ("epic", "hard", "medium", "hard"):
            task_id = await _task(store, user.id, difficulty)
            results.append(await engine.complete_task(task_id, user.id))

        assert [r.new_experience for r in results] == [50, 70, 80, 100]
        assert [r.level_up for r in results] == [False, False, False, True]
        assert results[-1].level == 2

        stats = await engine.compute_stats(user.id)
        assert stats.level == 2
        assert stats.experience == 100
        assert stats.experience_to_next_level == 100
        assert stats.completed_count == 4

    @pytest.mark.asyncio
    async def test_already_completed_conflicts(self, store, engine, user):
        task_id = await _task(store, user.id, "medium")
        await engine.complete_task(task_id, user.id)

        with pytest.raises(ConflictError, match="already completed"):
            await engine.complete_task(task_id, user.id)

        profile = await store.get_user(user.id)
        assert profile.experience == 10

    @pytest.mark.asyncio
    async def test_missing_task_not_found(self, engine, user):
        with pytest.raises(NotFoundError):
            await engine.complete_task(999, user.id)

    @pytest.mark.asyncio
    async def test_foreign_task_not_found(self, store, engine, user):
        """Another user's task is indistinguishable from a missing one."""
        other = await store.create_user("rival", "rival@example.com", "x")
        task_id = await _task(store, other.id, "epic")

        with pytest.raises(NotFoundError):
            await engine.complete_task(task_id, user.id)

        assert (await store.get_task(other.id, task_id)).completed is False
        assert (await store.get_user(user.id)).experience == 0

    @pytest.mark.asyncio
    async def test_concurrent_completions_of_same_task(self, store, engine, user):
        task_id = await _task(store, user.id, "epic")

        outcomes = await asyncio.gather(
            engine.complete_task(task_id, user.id),
            engine.complete_task(task_id, user.id),
            return_exceptions=True,
        )

        assert sum(isinstance(o, ConflictError) for o in outcomes) == 1
        assert (await store.get_user(user.id)).experience == 50

    @pytest.mark.asyncio
    async def test_concurrent_completions_of_different_tasks(self, store, engine, user):
        task_ids = [await _task(store, user.id, "hard") for _ in range(5)]

        await asyncio.gather(*(engine.complete_task(t, user.id) for t in task_ids))

        profile = await store.get_user(user.id)
        assert profile.experience == 100
        assert profile.level == 2

    @pytest.mark.asyncio
    async def test_evaluation_failure_does_not_fail_completion(self, store, engine, user):
        task_id = await _task(store, user.id, "medium")
        engine.evaluator.evaluate = AsyncMock(side_effect=RuntimeError("boom"))

        result = await engine.complete_task(task_id, user.id)

        assert result.new_experience == 10
        assert result.achievements_unlocked == []
        assert (await store.get_user(user.id)).experience == 10


class TestComputeStats:
    @pytest.mark.asyncio
    async def test_new_user(self, engine, user):
        stats = await engine.compute_stats(user.id)

        assert stats.username == "hero"
        assert stats.level == 1
        assert stats.experience == 0
        assert stats.experience_to_next_level == 100
        assert stats.completed_count == 0
        assert stats.total_tasks == 0
        assert stats.unlocked_achievements == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, engine):
        with pytest.raises(NotFoundError):
            await engine.compute_stats(12345)

    @pytest.mark.asyncio
    async def test_week_warrior_unlocked_on_read(self, store, engine, user):
        """A streak reached at login shows up in the very next stats read."""
        await store.record_login(user.id, datetime.now(timezone.utc), streak_days=7)

        stats = await engine.compute_stats(user.id)

        assert [a.name for a in stats.unlocked_achievements] == ["Week Warrior"]
        assert stats.streak_days == 7

    @pytest.mark.asyncio
    async def test_counts_incomplete_tasks(self, store, engine, user):
        done = await _task(store, user.id, "easy")
        await _task(store, user.id, "easy")
        await engine.complete_task(done, user.id)

        stats = await engine.compute_stats(user.id)

        assert stats.completed_count == 1
        assert stats.total_tasks == 2
        assert stats.experience_into_level == 5

    @pytest.mark.asyncio
    async def test_deleting_completed_task_retracts_nothing(self, store, engine, user):
        task_id = await _task(store, user.id, "epic")
        await engine.complete_task(task_id, user.id)

        assert await store.delete_task(user.id, task_id) is True
        stats = await engine.compute_stats(user.id)

        assert stats.experience == 50
        assert stats.completed_count == 0
        assert [a.name for a in stats.unlocked_achievements] == ["First Step"]


class TestEvaluateAchievements:
    @pytest.mark.asyncio
    async def test_callable_on_its_own(self, store, engine, user):
        task_id = await _task(store, user.id, "easy")
        await store.complete_task(user.id, task_id, datetime.now(timezone.utc))

        unlocked = await engine.evaluate_achievements(user.id)

        assert [a.name for a in unlocked] == ["First Step"]
        assert await engine.evaluate_achievements(user.id) == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, engine):
        with pytest.raises(NotFoundError):
            await engine.evaluate_achievements(12345)
