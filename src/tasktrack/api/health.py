"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and
reports whether the database and the cache are reachable. A missing
cache is "disabled", not an error; the API works without it.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack import __version__
from tasktrack.cache import NullCache, TaskCache, get_cache
from tasktrack.db.engine import get_db

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: TaskCache = Depends(get_cache),
):
    """Check server health and dependency connectivity."""
    checks = {"version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception:
        logger.warning("health.database_failed", exc_info=True)
        checks["database"] = "error"

    if isinstance(cache, NullCache):
        checks["cache"] = "disabled"
    else:
        checks["cache"] = "ok" if await cache.ping() else "unreachable"

    healthy = checks["database"] == "ok"
    return {
        "success": healthy,
        "message": "API is running" if healthy else "API is degraded",
        **checks,
    }
