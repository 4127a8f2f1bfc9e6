"""
Authentication business logic.

Handles registration, login, account lockout and the daily login streak.
"""

from __future__ import annotations

import functools
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog

from questlog.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from questlog.config import get_settings
from questlog.errors import ValidationError

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from questlog.storage.base import ProgressionStore, UserRecord

logger = structlog.get_logger()


class InvalidCredentialsError(ValueError):
    """Unknown login or wrong password. The message never says which."""


class AccountLockedError(PermissionError):
    """Too many failed login attempts."""


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    store: ProgressionStore,
    username: str,
    email: str,
    password: str,
) -> UserRecord:
    """
    Register a new user.

    Raises:
        ValidationError: If the password is too weak.
        ConflictError: If the username or email is already taken.
    """
    try:
        validate_password_strength(password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    user = await store.create_user(username=username, email=email, password_hash=hash_password(password))
    logger.info("user_created", user_id=user.id, username=username)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def next_streak(previous_login: datetime | None, now: datetime, current_streak: int) -> int:
    """Streak after a login at ``now``.

    Consecutive UTC calendar days extend the streak, a second login on the
    same day keeps it, and any gap restarts it at 1.
    """
    if previous_login is None:
        return 1
    if previous_login.tzinfo is None:
        previous_login = previous_login.replace(tzinfo=timezone.utc)
    last_day = previous_login.astimezone(timezone.utc).date()
    today = now.astimezone(timezone.utc).date()
    if last_day == today:
        return max(current_streak, 1)
    if last_day == today - timedelta(days=1):
        return current_streak + 1
    return 1


async def authenticate_user(
    store: ProgressionStore,
    redis: Redis,
    login: str,
    password: str,
) -> UserRecord:
    """
    Authenticate by username or email plus password.

    Failures are counted per login string, so unknown names lock out exactly
    like real accounts and the responses never tell the two apart.

    Raises:
        InvalidCredentialsError: If the login is unknown or the password is wrong.
        AccountLockedError: If the login is temporarily locked.
    """
    if await check_account_lockout(redis, login):
        msg = "Account temporarily locked. Try again later."
        raise AccountLockedError(msg)

    user = await store.get_user_by_login(login)
    if user is None:
        # Pay the same hashing cost as a real account.
        verify_password(password, _dummy_hash())
        await increment_failed_login(redis, login)
        msg = "Invalid credentials"
        raise InvalidCredentialsError(msg)

    if not verify_password(password, user.password_hash):
        await increment_failed_login(redis, login)
        msg = "Invalid credentials"
        raise InvalidCredentialsError(msg)

    await clear_failed_login(redis, login)

    now = datetime.now(timezone.utc)
    streak = next_streak(user.last_login, now, user.streak_days)

    new_hash = None
    if check_needs_rehash(user.password_hash):
        new_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)

    await store.record_login(user.id, last_login=now, streak_days=streak, password_hash=new_hash)
    user.last_login = now
    user.streak_days = streak
    return user


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("questlog-unknown-login")


# ---------------------------------------------------------------------------
# Account lockout
# ---------------------------------------------------------------------------


def _attempts_key(login: str) -> str:
    return f"login_attempts:{login.strip().lower()}"


async def check_account_lockout(redis: Redis, login: str) -> bool:
    """Check if the login is locked due to too many failed attempts."""
    settings = get_settings()
    count_str = await redis.get(_attempts_key(login))
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis, login: str) -> int:
    """Increment failed login counter. Returns the new count."""
    settings = get_settings()
    key = _attempts_key(login)
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis, login: str) -> None:
    """Clear the failed login counter after a successful login."""
    await redis.delete(_attempts_key(login))
