"""Redis-backed fixed window rate limiting.

``RateLimitMiddleware`` applies the general per-caller window to every
request. ``RateLimiter`` instances are route dependencies for the tighter
admin, strict-admin and flip policies. Callers are keyed by the user id in
a valid bearer token, falling back to the client IP. Without a Redis pool
requests pass through unthrottled.
"""

from __future__ import annotations

import time
from typing import Any

import jwt
import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cointoss.auth.jwt import verify_token
from cointoss.config import get_settings
from cointoss.errors import RateLimitError
from cointoss.middleware.error_handler import error_response
from cointoss.redis_client import get_redis

logger = structlog.get_logger()

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready"})


def caller_key(request: Request) -> str:
    """``user:<id>`` for a valid bearer token, otherwise ``ip:<address>``."""
    user_id = getattr(request.state, "user_id", None)
    if user_id is not None:
        return f"user:{user_id}"

    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            payload = verify_token(auth[7:].strip())
            return f"user:{payload['sub']}"
        except jwt.InvalidTokenError:
            pass

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


async def hit_window(scope: str, caller: str, limit: int, window_seconds: int) -> tuple[int, int, int]:
    """Count one hit in the current window.

    Returns (count, remaining, seconds until the window resets).
    Raises RuntimeError when Redis is not initialized.
    """
    redis = get_redis()
    now = int(time.time())
    window = now // window_seconds
    key = f"ratelimit:{scope}:{caller}:{window}"

    pipe = redis.pipeline()
    pipe.incr(key)
    pipe.expire(key, window_seconds + 1)
    results: list[Any] = await pipe.execute()

    count: int = results[0]
    remaining = max(0, limit - count)
    reset_in = (window + 1) * window_seconds - now
    return count, remaining, reset_in


class RateLimitMiddleware(BaseHTTPMiddleware):
    """General per-caller rate limit."""

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        caller = caller_key(request)
        try:
            count, remaining, reset_in = await hit_window(
                "general", caller, self.requests_per_window, self.window_seconds,
            )
        except RuntimeError:
            # Redis not initialized: let the request through without rate limiting
            return await call_next(request)
        except RedisError:
            logger.warning("rate_limit_backend_unavailable", policy="general")
            return await call_next(request)

        if count > self.requests_per_window:
            logger.warning("rate_limit_exceeded", caller=caller, policy="general")
            return error_response(
                429,
                "Too many requests from this IP, please try again later.",
                extra={"retryAfter": reset_in},
                headers={
                    "Retry-After": str(reset_in),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(self.requests_per_window),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        return response


class RateLimiter:
    """Route-level policy, used as ``Depends(admin_rate_limit)``.

    Limits are read from settings on each call so tests can override them.
    """

    def __init__(self, policy: str, message: str) -> None:
        self.policy = policy
        self.message = message

    def limits(self) -> tuple[int, int]:
        settings = get_settings()
        return (
            getattr(settings, f"{self.policy}_rate_limit_requests"),
            getattr(settings, f"{self.policy}_rate_limit_window_seconds"),
        )

    async def __call__(self, request: Request) -> None:
        limit, window_seconds = self.limits()
        caller = caller_key(request)
        try:
            count, _remaining, reset_in = await hit_window(self.policy, caller, limit, window_seconds)
        except RuntimeError:
            return
        except RedisError:
            logger.warning("rate_limit_backend_unavailable", policy=self.policy)
            return
        if count > limit:
            logger.warning("rate_limit_exceeded", caller=caller, policy=self.policy)
            raise RateLimitError(self.message, retry_after=reset_in)


admin_rate_limit = RateLimiter(
    "admin", "Too many admin requests. Please wait before trying again.",
)
strict_admin_rate_limit = RateLimiter(
    "strict_admin", "Too many sensitive operations. Please wait 5 minutes before trying again.",
)
flip_rate_limit = RateLimiter(
    "flip", "Too fast! Please wait a moment before flipping again.",
)
