"""Expired-competition sweep, as an arq cron job or an in-process loop.

Production runs ``arq cointoss.competition.expiry_worker.ExpiryWorkerSettings``.
Single-process deployments can rely on the API lifespan instead, which
starts ``run_expiry_sweeper`` when ``expiry_sweep_interval_seconds > 0``.
"""

from __future__ import annotations

import asyncio
import logging

from arq import cron
from arq.connections import RedisSettings

from cointoss.competition.competition_service import ExpiredSweepResult, process_expired
from cointoss.config import get_settings
from cointoss.database import close_db, get_session_factory, init_db

logger = logging.getLogger(__name__)


async def sweep_once() -> ExpiredSweepResult:
    """Run one sweep in a fresh session."""
    settings = get_settings()
    factory = get_session_factory()
    async with factory() as db:
        return await process_expired(db, top_count=settings.auto_winner_count)


async def run_expiry_sweeper(interval_seconds: float) -> None:
    """Sweep forever, sleeping ``interval_seconds`` between passes.

    A failed pass is logged and retried on the next tick; cancellation stops the loop.
    """
    while True:
        try:
            result = await sweep_once()
            if result.count:
                logger.info("Expiry sweeper closed %d competitions", result.count)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Expiry sweep failed")
        await asyncio.sleep(interval_seconds)


async def expiry_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize the DB engine on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    logger.info("Expiry worker started")


async def expiry_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Expiry worker shut down")


async def process_expired_competitions(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled arq task: close expired competitions and pick their winners."""
    try:
        result = await sweep_once()
    except Exception:
        logger.exception("Failed to process expired competitions")
        raise
    logger.info(
        "Expired competitions processed: %d (no eligible players: %s)",
        result.count, result.no_eligible,
    )
    return result.count


class ExpiryWorkerSettings:
    """arq worker settings for the competition expiry scheduler."""

    functions = [process_expired_competitions]
    cron_jobs = [
        cron(process_expired_competitions, second=0, run_at_startup=True),  # every minute
    ]
    on_startup = expiry_startup
    on_shutdown = expiry_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 1
    job_timeout = 120
    allow_abort_jobs = True
