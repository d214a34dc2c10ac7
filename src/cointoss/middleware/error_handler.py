"""Global error handlers. Every failure renders as ``{"success": false, "error": ...}``."""

from __future__ import annotations

import math
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cointoss.errors import CoinTossError, RateLimitError

logger = structlog.get_logger()


def error_response(
    status_code: int,
    message: str,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": message}
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation error"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    msg = str(first.get("msg", "Invalid value"))
    # pydantic prefixes custom validator messages with "Value error, "
    msg = msg.removeprefix("Value error, ")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(CoinTossError)
    async def domain_error_handler(request: Request, exc: CoinTossError) -> JSONResponse:
        extra = dict(exc.extra)
        headers: dict[str, str] | None = None
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            extra["retryAfter"] = exc.retry_after
            headers = {"Retry-After": str(max(1, math.ceil(exc.retry_after)))}
        if exc.status_code >= 500:
            logger.error("domain_error", path=request.url.path, error=exc.message)
            return error_response(exc.status_code, "Internal server error")
        return error_response(exc.status_code, exc.message, extra, headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions. Details go to the log only."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return error_response(500, "Internal server error")
