"""Game settings singleton persistence."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.db.models import GameSettings
from cointoss.errors import ValidationError
from cointoss.game.settings_service import get_game_settings, update_game_settings

pytestmark = pytest.mark.asyncio


class TestGameSettings:
    async def test_defaults_created_on_first_read(self, db_session: AsyncSession):
        settings = await get_game_settings(db_session)
        await db_session.commit()

        assert settings.min_streak_for_leaderboard == 5
        assert settings.competition_duration_hours == 24
        assert settings.max_flips_per_minute == 240
        assert settings.daily_fail_limit == 3

    async def test_single_row(self, db_session: AsyncSession):
        first = await get_game_settings(db_session)
        second = await get_game_settings(db_session)
        await db_session.commit()
        assert first.id == second.id
        assert await db_session.scalar(select(func.count()).select_from(GameSettings)) == 1

    async def test_partial_update_keeps_other_fields(self, db_session: AsyncSession):
        updated = await update_game_settings(db_session, {"daily_fail_limit": 7, "max_flips_per_minute": None})
        assert updated.daily_fail_limit == 7
        assert updated.max_flips_per_minute == 240
        assert updated.min_streak_for_leaderboard == 5

    async def test_zero_daily_limit_allowed(self, db_session: AsyncSession):
        updated = await update_game_settings(db_session, {"daily_fail_limit": 0})
        assert updated.daily_fail_limit == 0

    async def test_invalid_update_changes_nothing(self, db_session: AsyncSession):
        with pytest.raises(ValidationError, match="Minimum streak must be at least 1"):
            await update_game_settings(db_session, {"min_streak_for_leaderboard": 0, "daily_fail_limit": 9})
        settings = await get_game_settings(db_session)
        assert settings.daily_fail_limit == 3
