"""Health, readiness, and version endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from questlog.config import get_settings
from questlog.database import get_engine
from questlog.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness() -> dict[str, object]:
    """Readiness probe: checks DB and Redis connectivity for the SQL backend."""
    settings = get_settings()
    if settings.storage_backend == "memory":
        return {"status": "ready", "checks": {"storage": "memory"}}

    checks: dict[str, object] = {}

    try:
        async with get_engine().connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        redis = get_redis()
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
