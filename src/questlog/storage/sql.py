"""PostgreSQL progression store (SQLAlchemy async ORM).

One instance wraps one request-scoped ``AsyncSession``. Every mutating method
commits before returning so the caller can read its own writes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from questlog.db.models import Achievement, Task, UnlockedAchievement, User
from questlog.errors import ConflictError, NotFoundError, PersistenceError
from questlog.gamification.experience import XP_PER_LEVEL
from questlog.storage.base import (
    UPDATABLE_TASK_FIELDS,
    AchievementRecord,
    CompletionOutcome,
    TaskRecord,
    UnlockedAchievementRecord,
    UserRecord,
)

logger = structlog.get_logger()


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        level=row.level,
        experience=row.experience,
        streak_days=row.streak_days,
        last_login=row.last_login,
        created_at=row.created_at,
    )


def _task_record(row: Task) -> TaskRecord:
    return TaskRecord(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        description=row.description,
        priority=row.priority,
        difficulty=row.difficulty,
        experience_points=row.experience_points,
        completed=row.completed,
        completed_at=row.completed_at,
        due_date=row.due_date,
        category=row.category,
        tags=list(row.tags or []),
        created_at=row.created_at,
    )


def _achievement_record(row: Achievement) -> AchievementRecord:
    return AchievementRecord(
        id=row.id,
        name=row.name,
        description=row.description,
        icon=row.icon,
        type=row.type,
        required_value=row.required_value,
    )


class SqlProgressionStore:
    """SQLAlchemy implementation of ``ProgressionStore``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _fail(self, operation: str, exc: SQLAlchemyError) -> PersistenceError:
        await self.db.rollback()
        logger.error("store_operation_failed", operation=operation, error=str(exc))
        return PersistenceError()

    # ---------------------------------------------------------------------------
    # Users
    # ---------------------------------------------------------------------------

    async def create_user(self, username: str, email: str, password_hash: str) -> UserRecord:
        user = User(username=username, email=email.lower().strip(), password_hash=password_hash)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Username or email already exists") from None
        except SQLAlchemyError as exc:
            raise await self._fail("create_user", exc) from exc
        await self.db.refresh(user)
        return _user_record(user)

    async def get_user(self, user_id: int) -> UserRecord | None:
        try:
            result = await self.db.execute(
                select(User).where(User.id == user_id).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_user", exc) from exc
        row = result.scalar_one_or_none()
        return _user_record(row) if row else None

    async def get_user_by_login(self, login: str) -> UserRecord | None:
        try:
            result = await self.db.execute(
                select(User)
                .where(or_(User.username == login, func.lower(User.email) == login.lower()))
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_user_by_login", exc) from exc
        row = result.scalars().first()
        return _user_record(row) if row else None

    async def record_login(
        self,
        user_id: int,
        last_login: datetime,
        streak_days: int,
        password_hash: str | None = None,
    ) -> None:
        values: dict[str, Any] = {"last_login": last_login, "streak_days": streak_days}
        if password_hash is not None:
            values["password_hash"] = password_hash
        try:
            await self.db.execute(update(User).where(User.id == user_id).values(**values))
            await self.db.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("record_login", exc) from exc

    # ---------------------------------------------------------------------------
    # Tasks
    # ---------------------------------------------------------------------------

    async def create_task(self, user_id: int, **fields: Any) -> TaskRecord:
        task = Task(user_id=user_id, **fields)
        self.db.add(task)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise NotFoundError("User not found") from None
        except SQLAlchemyError as exc:
            raise await self._fail("create_task", exc) from exc
        await self.db.refresh(task)
        return _task_record(task)

    async def list_tasks(self, user_id: int, completed: bool | None = None) -> list[TaskRecord]:
        stmt = select(Task).where(Task.user_id == user_id)
        if completed is not None:
            stmt = stmt.where(Task.completed.is_(completed))
        stmt = stmt.order_by(Task.created_at.desc(), Task.id.desc()).execution_options(populate_existing=True)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("list_tasks", exc) from exc
        return [_task_record(row) for row in result.scalars()]

    async def get_task(self, user_id: int, task_id: int) -> TaskRecord | None:
        try:
            result = await self.db.execute(
                select(Task)
                .where(Task.id == task_id, Task.user_id == user_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("get_task", exc) from exc
        row = result.scalar_one_or_none()
        return _task_record(row) if row else None

    async def update_task(self, user_id: int, task_id: int, changes: dict[str, Any]) -> TaskRecord | None:
        values = {k: v for k, v in changes.items() if k in UPDATABLE_TASK_FIELDS}
        if not values:
            return await self.get_task(user_id, task_id)
        try:
            result = await self.db.execute(
                update(Task)
                .where(Task.id == task_id, Task.user_id == user_id)
                .values(**values)
                .returning(Task)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
            record = _task_record(row) if row else None
            await self.db.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("update_task", exc) from exc
        return record

    async def delete_task(self, user_id: int, task_id: int) -> bool:
        try:
            result = await self.db.execute(
                delete(Task).where(Task.id == task_id, Task.user_id == user_id)
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("delete_task", exc) from exc
        return result.rowcount > 0

    async def count_tasks(self, user_id: int, completed: bool | None = None) -> int:
        stmt = select(func.count()).select_from(Task).where(Task.user_id == user_id)
        if completed is not None:
            stmt = stmt.where(Task.completed.is_(completed))
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("count_tasks", exc) from exc
        return int(result.scalar_one())

    async def complete_task(self, user_id: int, task_id: int, completed_at: datetime) -> CompletionOutcome:
        """Mark complete and award XP in one transaction.

        The guarded UPDATE only matches an owned, not-yet-completed task, so
        two concurrent completions of the same task cannot both succeed. The
        user row is bumped with a single increment-and-recompute statement,
        so concurrent completions of different tasks never lose an increment.
        """
        try:
            marked = await self.db.execute(
                update(Task)
                .where(
                    Task.id == task_id,
                    Task.user_id == user_id,
                    Task.completed.is_(False),
                )
                .values(completed=True, completed_at=completed_at)
                .returning(Task)
                .execution_options(populate_existing=True)
            )
            task = marked.scalar_one_or_none()

            if task is None:
                existing = await self.db.execute(
                    select(Task.completed).where(Task.id == task_id, Task.user_id == user_id)
                )
                already_completed = existing.scalar_one_or_none()
                await self.db.rollback()
                if already_completed is None:
                    raise NotFoundError("Task not found")
                raise ConflictError("Task already completed")

            award = task.experience_points
            task_record = _task_record(task)
            new_total = User.experience + award
            bumped = await self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    experience=new_total,
                    level=func.greatest(User.level, new_total // XP_PER_LEVEL + 1),
                )
                .returning(User.experience, User.level)
                .execution_options(synchronize_session=False)
            )
            new_experience, level = bumped.one()
            await self.db.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("complete_task", exc) from exc

        return CompletionOutcome(
            task=task_record,
            old_experience=new_experience - award,
            new_experience=new_experience,
            level=level,
        )

    # ---------------------------------------------------------------------------
    # Achievements
    # ---------------------------------------------------------------------------

    async def seed_achievements(self, entries: list[dict[str, Any]]) -> int:
        try:
            for entry in entries:
                stmt = pg_insert(Achievement).values(**entry)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["name"],
                    set_={
                        "description": stmt.excluded.description,
                        "icon": stmt.excluded.icon,
                        "type": stmt.excluded.type,
                        "required_value": stmt.excluded.required_value,
                    },
                )
                await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("seed_achievements", exc) from exc
        return len(entries)

    async def list_achievements(self) -> list[AchievementRecord]:
        try:
            result = await self.db.execute(
                select(Achievement).order_by(Achievement.type, Achievement.required_value, Achievement.id)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("list_achievements", exc) from exc
        return [_achievement_record(row) for row in result.scalars()]

    async def unlock_achievements(
        self,
        user_id: int,
        achievement_type: str,
        value: int,
        unlocked_at: datetime,
    ) -> list[AchievementRecord]:
        already = select(UnlockedAchievement.achievement_id).where(UnlockedAchievement.user_id == user_id)
        try:
            result = await self.db.execute(
                select(Achievement)
                .where(
                    Achievement.type == achievement_type,
                    Achievement.required_value <= value,
                    Achievement.id.not_in(already),
                )
                .order_by(Achievement.required_value)
            )
            candidates = [_achievement_record(row) for row in result.scalars()]
            if not candidates:
                return []

            # A concurrent evaluation may insert the same pair first; the
            # unique constraint turns that into a no-op instead of a duplicate.
            stmt = (
                pg_insert(UnlockedAchievement)
                .values([
                    {"user_id": user_id, "achievement_id": a.id, "unlocked_at": unlocked_at}
                    for a in candidates
                ])
                .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
                .returning(UnlockedAchievement.achievement_id)
            )
            inserted = set((await self.db.execute(stmt)).scalars().all())
            await self.db.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("unlock_achievements", exc) from exc
        return [a for a in candidates if a.id in inserted]

    async def list_unlocked(self, user_id: int) -> list[UnlockedAchievementRecord]:
        try:
            result = await self.db.execute(
                select(UnlockedAchievement)
                .where(UnlockedAchievement.user_id == user_id)
                .order_by(UnlockedAchievement.unlocked_at, UnlockedAchievement.achievement_id)
            )
        except SQLAlchemyError as exc:
            raise await self._fail("list_unlocked", exc) from exc
        return [
            UnlockedAchievementRecord(
                achievement=_achievement_record(row.achievement),
                unlocked_at=row.unlocked_at,
            )
            for row in result.scalars().unique()
        ]
