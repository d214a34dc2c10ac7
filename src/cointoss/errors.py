"""Domain error taxonomy.

Services raise these; ``cointoss.middleware.error_handler`` renders them as
flat ``{"success": false, "error": ...}`` JSON with the matching status.
"""

from __future__ import annotations

from typing import Any


class CoinTossError(Exception):
    """Base class for errors that map to a client-visible HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(CoinTossError):
    """Malformed or out-of-range input."""

    status_code = 400


class ConflictError(CoinTossError):
    """Operation not allowed in the target's current state."""

    status_code = 400


class NoActiveCompetitionError(CoinTossError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("No active competition")


class AuthError(CoinTossError):
    """Missing or invalid credential."""

    status_code = 401


class ForbiddenError(CoinTossError):
    """Authenticated but not allowed."""

    status_code = 403


class NotFoundError(CoinTossError):
    status_code = 404


class RateLimitError(CoinTossError):
    """Too many requests. ``retry_after`` is in seconds when known."""

    status_code = 429

    def __init__(
        self, message: str, *, retry_after: float | None = None, extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, extra=extra)
        self.retry_after = retry_after


class TooFastError(RateLimitError):
    def __init__(self, retry_after: float | None = None) -> None:
        super().__init__(
            "Too fast! Please wait a moment before flipping again.",
            retry_after=retry_after,
        )


class DailyLimitReachedError(RateLimitError):
    def __init__(self, daily_fails_used: int, daily_fail_limit: int) -> None:
        super().__init__(
            f"Daily fail limit reached! You can only get {daily_fail_limit} tails per day. "
            "Admin can reset this limit.",
            extra={"dailyFailsUsed": daily_fails_used, "dailyFailLimit": daily_fail_limit},
        )


class InternalError(CoinTossError):
    """Unexpected failure. The message is logged, never sent to the caller."""

    status_code = 500
