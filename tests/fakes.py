"""In-memory stand-ins for the Redis client used by RedisCache and rate limiting.

Only the handful of redis.asyncio.Redis methods the app calls are
implemented. TTLs are recorded, not enforced.
"""

from __future__ import annotations

import fnmatch

from redis.exceptions import ConnectionError as RedisConnectionError


class FakeRedis:
    """Deterministic async Redis double.

    - Stores str values (decode_responses=True semantics)
    - Records every call for assertions
    - fail=True makes every call raise ConnectionError, like a dead server
    """

    def __init__(self, fail: bool = False) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.fail = fail

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if self.fail:
            raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        self._record("ping")
        return True

    async def get(self, key: str) -> str | None:
        self._record("get", key)
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._record("set", key, value, ex)
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._record("delete", *keys)
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def scan_iter(self, match: str = "*", count: int | None = None):
        self._record("scan_iter", match, count)
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def incr(self, key: str) -> int:
        self._record("incr", key)
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self._record("expire", key, seconds)
        self.ttls[key] = seconds
        return key in self.store

    async def aclose(self) -> None:
        self.calls.append(("aclose", ()))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]
