"""Rate limiting middleware — Redis fixed window per IP.

Learn: Uses a per-minute counter stored in Redis.
Each IP gets a counter key like "tasktrack:rl:{ip}:{bucket}:{minute}".
Login and registration get a stricter limit to slow down credential
stuffing.

Shares the Redis client with the task list cache (app.state.redis).
When there is no client, or Redis errors, requests pass through
unthrottled. Rate limiting is best-effort, like the cache.
"""

import time

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from tasktrack.errors import error_response

AUTH_PATHS = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        redis = getattr(request.app.state, "redis", None)
        if redis is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_auth = request.url.path.startswith(AUTH_PATHS)
        rpm = self.auth_rpm if is_auth else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "api"
        key = f"tasktrack:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except (RedisError, OSError):
            return await call_next(request)

        if count > rpm:
            return error_response(
                429,
                "Too many requests. Try again later.",
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
