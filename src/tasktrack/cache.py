"""Task list cache — Redis read-through with coarse invalidation.

Learn: The cache is advisory. Every call below may silently do nothing:
if Redis is disabled, unreachable at startup, or fails mid-request, reads
become misses and writes/invalidations become no-ops. Correctness never
depends on the cache, only latency does.

Key layout:
    tasks:{role}:{caller_id}:{normalized-query-json}

Role and caller id are always part of the key, so one caller's cached
page can never be served to another. Any task mutation drops the whole
"tasks:*" namespace.

The cache object is built once at startup (build_cache) and injected;
NullCache is the default wherever nothing was injected.
"""

import json
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis
import structlog
from fastapi import Request
from redis.exceptions import RedisError

from tasktrack.config import Settings

logger = structlog.get_logger()

TASK_LIST_PREFIX = "tasks"
TASK_LIST_PATTERN = f"{TASK_LIST_PREFIX}:*"

_DELETE_BATCH = 500

# Errors that mean "cache unavailable" rather than "bug".
_CACHE_ERRORS = (RedisError, OSError)


class TaskCache(Protocol):
    async def get(self, key: str) -> Optional[dict]: ...

    async def set(self, key: str, value: dict, ttl: int) -> None: ...

    async def invalidate(self, pattern: str) -> None: ...


class NullCache:
    """Cache that never holds anything. Used when Redis is off or down."""

    async def get(self, key: str) -> Optional[dict]:
        return None

    async def set(self, key: str, value: dict, ttl: int) -> None:
        return None

    async def invalidate(self, pattern: str) -> None:
        return None

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        return None


class RedisCache:
    """JSON values in Redis with graceful fallback on every call."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def get(self, key: str) -> Optional[dict]:
        try:
            raw = await self.client.get(key)
        except _CACHE_ERRORS as e:
            logger.warning("cache.get_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache.corrupt_entry", key=key)
            return None

    async def set(self, key: str, value: dict, ttl: int) -> None:
        try:
            await self.client.set(key, json.dumps(value, default=str), ex=ttl)
        except _CACHE_ERRORS as e:
            logger.warning("cache.set_failed", key=key, error=str(e))

    async def invalidate(self, pattern: str) -> None:
        """Delete every key matching a glob pattern (SCAN, never KEYS)."""
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self.client.scan_iter(match=pattern, count=_DELETE_BATCH):
                batch.append(key)
                if len(batch) >= _DELETE_BATCH:
                    deleted += await self.client.delete(*batch)
                    batch = []
            if batch:
                deleted += await self.client.delete(*batch)
        except _CACHE_ERRORS as e:
            logger.warning("cache.invalidate_failed", pattern=pattern, error=str(e))
            return
        logger.debug("cache.invalidated", pattern=pattern, deleted=deleted)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except _CACHE_ERRORS:
            return False

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except _CACHE_ERRORS as e:
            logger.warning("cache.close_failed", error=str(e))


def list_cache_key(role: str, caller_id: Any, params: dict) -> str:
    """Build the list-cache key for one caller and one query shape.

    params must already be normalized (clamped page/limit, scoped owner),
    so equivalent requests share an entry.
    """
    query = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return f"{TASK_LIST_PREFIX}:{role}:{caller_id}:{query}"


async def build_cache(settings: Settings) -> RedisCache | NullCache:
    """Create the process-wide cache. Falls back to NullCache, never raises."""
    if not settings.cache_configured:
        logger.info("cache.disabled")
        return NullCache()

    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=1.0,
        socket_timeout=1.0,
    )
    try:
        await client.ping()
    except _CACHE_ERRORS as e:
        logger.warning("cache.unavailable", url=settings.redis_url, error=str(e))
        await client.aclose()
        return NullCache()

    logger.info("cache.connected", url=settings.redis_url)
    return RedisCache(client)


def get_cache(request: Request) -> TaskCache:
    """FastAPI dependency — the cache built at startup, or a NullCache."""
    return getattr(request.app.state, "cache", None) or NullCache()
