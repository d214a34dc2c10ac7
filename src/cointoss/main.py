"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cointoss.admin.audit import AuditLog
from cointoss.admin.router import router as admin_router
from cointoss.auth.admin_cache import AdminStatusCache
from cointoss.competition.expiry_worker import run_expiry_sweeper
from cointoss.competition.router import router as competition_router
from cointoss.config import get_settings
from cointoss.database import close_db, init_db
from cointoss.game.router import router as game_router
from cointoss.health.router import router as health_router
from cointoss.middleware import setup_middleware
from cointoss.prizes.router import router as prizes_router
from cointoss.redis_client import close_redis, init_redis
from cointoss.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    sweeper_task: asyncio.Task[None] | None = None
    if settings.expiry_sweep_interval_seconds > 0:
        sweeper_task = asyncio.create_task(run_expiry_sweeper(settings.expiry_sweep_interval_seconds))
        logger.info("Expiry sweeper running every %ss", settings.expiry_sweep_interval_seconds)

    yield

    if sweeper_task is not None:
        sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper_task

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Coin Toss API",
        description="Backend API for the Coin Toss streak game",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.admin_cache = AdminStatusCache(ttl_seconds=settings.admin_cache_ttl_seconds)
    app.state.audit_log = AuditLog(max_entries=settings.audit_log_max_entries)

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(game_router)
    app.include_router(competition_router)
    app.include_router(prizes_router)
    app.include_router(admin_router)
    app.include_router(users_router)

    return app


app = create_app()
