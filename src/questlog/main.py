"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from questlog.auth.router import router as auth_router
from questlog.config import get_settings
from questlog.database import close_db, init_db
from questlog.dependencies import get_store
from questlog.gamification.router import router as gamification_router
from questlog.gamification.seed import seed_achievements
from questlog.health.router import router as health_router
from questlog.middleware import setup_middleware
from questlog.redis_client import close_redis, init_redis
from questlog.tasks.router import router as tasks_router

logger = structlog.get_logger()


async def seed_catalog() -> None:
    """Seed the achievement catalog (idempotent); failures are only logged."""
    stores = get_store()
    try:
        await seed_achievements(await anext(stores))
    except Exception:
        logger.warning("achievement_seeding_failed", exc_info=True)
    finally:
        await stores.aclose()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    use_sql = settings.storage_backend == "sql"
    if use_sql:
        await init_db(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.debug,
        )
    await init_redis(settings.redis_url, max_connections=settings.redis_max_connections)

    await seed_catalog()

    yield

    if use_sql:
        await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Questlog API",
        description="Gamified task tracker: complete quests, earn experience, unlock achievements",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(tasks_router)
    app.include_router(gamification_router)

    return app


app = create_app()
