"""Achievement evaluator tests: thresholds, catch-up and idempotency."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from questlog.gamification.achievements import AchievementEvaluator, progression_signals
from questlog.gamification.seed import ACHIEVEMENT_SEED_DATA, seed_achievements
from questlog.storage.base import UserRecord
from questlog.storage.memory import InMemoryProgressionStore


async def _complete_n(store: InMemoryProgressionStore, user_id: int, n: int, difficulty: str = "easy") -> None:
    for i in range(n):
        task = await store.create_task(user_id, title=f"task {i}", difficulty=difficulty, experience_points=5)
        await store.complete_task(user_id, task.id, datetime.now(timezone.utc))


@pytest_asyncio.fixture
async def user(store: InMemoryProgressionStore) -> UserRecord:
    return await store.create_user("hero", "hero@example.com", "x")


class TestProgressionSignals:
    def test_level_signal_derived_from_experience(self):
        """A stale stored level does not hide a level achievement."""
        user = UserRecord(id=1, username="u", email="u@e", password_hash="x", level=1, experience=420)
        assert progression_signals(user, 3) == {"tasks_completed": 3, "streak": 0, "level": 5}


class TestAchievementEvaluator:
    @pytest.mark.asyncio
    async def test_nothing_unlocked_for_new_user(self, store, user):
        unlocked = await AchievementEvaluator(store).evaluate(user)
        assert unlocked == []
        assert await store.list_unlocked(user.id) == []

    @pytest.mark.asyncio
    async def test_first_completion_unlocks_first_step(self, store, user):
        await _complete_n(store, user.id, 1)
        user = await store.get_user(user.id)

        unlocked = await AchievementEvaluator(store).evaluate(user)
        assert [a.name for a in unlocked] == ["First Step"]

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, store, user):
        await _complete_n(store, user.id, 1)
        user = await store.get_user(user.id)
        evaluator = AchievementEvaluator(store)

        await evaluator.evaluate(user)
        again = await evaluator.evaluate(user)

        assert again == []
        assert len(await store.list_unlocked(user.id)) == 1

    @pytest.mark.asyncio
    async def test_skipped_thresholds_caught_up_in_one_pass(self, store, user):
        """Jumping from 0 to 12 completions unlocks both 1 and 10 thresholds."""
        await _complete_n(store, user.id, 12)
        user = await store.get_user(user.id)

        unlocked = await AchievementEvaluator(store).evaluate(user)
        names = {a.name for a in unlocked}
        assert {"First Step", "Task Master"} <= names
        assert "Unstoppable" not in names

    @pytest.mark.asyncio
    async def test_streak_threshold(self, store, user):
        await store.record_login(user.id, datetime.now(timezone.utc), streak_days=7)
        user = await store.get_user(user.id)

        unlocked = await AchievementEvaluator(store).evaluate(user)
        assert [a.name for a in unlocked] == ["Week Warrior"]

    @pytest.mark.asyncio
    async def test_level_thresholds(self, store, user):
        task = await store.create_task(user.id, title="big", difficulty="epic", experience_points=1000)
        await store.complete_task(user.id, task.id, datetime.now(timezone.utc))
        user = await store.get_user(user.id)

        unlocked = await AchievementEvaluator(store).evaluate(user)
        names = {a.name for a in unlocked}
        assert {"Level 5", "Level 10", "First Step"} == names

    @pytest.mark.asyncio
    async def test_reseeding_keeps_unlocks(self, store, user):
        await _complete_n(store, user.id, 1)
        user = await store.get_user(user.id)
        await AchievementEvaluator(store).evaluate(user)

        await seed_achievements(store)

        assert len(await store.list_achievements()) == len(ACHIEVEMENT_SEED_DATA)
        assert [u.name for u in await store.list_unlocked(user.id)] == ["First Step"]
