"""Game settings singleton: lazy creation and validated partial updates."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.config import get_settings
from cointoss.db.models import SETTINGS_SINGLETON_KEY, GameSettings
from cointoss.errors import ValidationError
from cointoss.timeutils import utcnow

logger = logging.getLogger(__name__)

# field -> (minimum allowed, message when below it)
_FIELD_RULES: dict[str, tuple[int, str]] = {
    "min_streak_for_leaderboard": (1, "Minimum streak must be at least 1"),
    "competition_duration_hours": (1, "Competition duration must be at least 1 hour"),
    "max_flips_per_minute": (1, "Max flips per minute must be at least 1"),
    "daily_fail_limit": (0, "Daily fail limit cannot be negative"),
}


async def _select_settings(db: AsyncSession) -> GameSettings | None:
    result = await db.execute(
        select(GameSettings).where(GameSettings.singleton_key == SETTINGS_SINGLETON_KEY)
    )
    return result.scalar_one_or_none()


async def get_game_settings(db: AsyncSession) -> GameSettings:
    """Return the settings row, creating it with configured defaults on first access.

    A concurrent first read that loses the insert race falls back to the
    row the winner created.
    """
    row = await _select_settings(db)
    if row is not None:
        return row

    config = get_settings()
    row = GameSettings(
        singleton_key=SETTINGS_SINGLETON_KEY,
        min_streak_for_leaderboard=config.default_min_streak_for_leaderboard,
        competition_duration_hours=config.default_competition_duration_hours,
        max_flips_per_minute=config.default_max_flips_per_minute,
        daily_fail_limit=config.default_daily_fail_limit,
    )
    try:
        async with db.begin_nested():
            db.add(row)
    except IntegrityError:
        logger.info("Settings row created concurrently, re-reading")
        existing = await _select_settings(db)
        if existing is None:
            raise
        return existing

    logger.info("Created default game settings")
    return row


def validate_settings_update(changes: dict[str, Any]) -> None:
    """Raise ValidationError for the first provided field that is out of range."""
    for field, (minimum, message) in _FIELD_RULES.items():
        value = changes.get(field)
        if value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
            raise ValidationError(message)


async def update_game_settings(db: AsyncSession, changes: dict[str, Any]) -> GameSettings:
    """Apply only the provided fields and return the merged settings."""
    provided = {k: v for k, v in changes.items() if k in _FIELD_RULES and v is not None}
    validate_settings_update(provided)

    row = await get_game_settings(db)
    for field, value in provided.items():
        setattr(row, field, value)
    row.updated_at = utcnow()
    await db.commit()

    logger.info("Game settings updated: %s", provided)
    return row
