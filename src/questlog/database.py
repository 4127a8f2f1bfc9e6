"""Async SQLAlchemy engine and session factory.

Both are process-wide and created by ``init_db`` in the app lifespan. Each
request gets its own ``AsyncSession`` through ``get_session``.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

_NOT_INITIALIZED = "Database not initialized. Call init_db() first."


async def init_db(url: str, pool_size: int = 10, max_overflow: int = 10, echo: bool = False) -> None:
    """Create the engine and session factory for ``url``."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        echo=echo,
    )
    # Records are built from ORM rows after commit, so rows must stay loaded.
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; anything left uncommitted is rolled back on exit."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    async with _session_factory() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()
