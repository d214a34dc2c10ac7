"""Per-flip state transition for coin toss sessions.

A flip is evaluated as one optimistic transaction: read the session, run
the rate and daily-fail gates, draw, apply the streak transition and write
everything back. The session's ``version`` column makes the UPDATE
conditional, so a concurrent flip that committed first turns ours into a
``StaleDataError``; the whole flip is then re-evaluated against the fresh
row, where the rate gate usually rejects the duplicate.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from cointoss.competition.competition_service import find_active_competition
from cointoss.config import get_settings
from cointoss.db.models import Achievement, CoinTossSession, Competition, Flip, GameSettings
from cointoss.errors import DailyLimitReachedError, NoActiveCompetitionError, TooFastError
from cointoss.game.settings_service import get_game_settings
from cointoss.game.streak import (
    Outcome,
    SessionState,
    apply_flip,
    milestones_reached,
    min_flip_interval_ms,
)
from cointoss.timeutils import millis_between, utcnow

logger = logging.getLogger(__name__)

CoinDraw = Callable[[], Outcome]


def random_draw() -> Outcome:
    """Uniform 50/50 outcome."""
    return Outcome.HEADS if secrets.randbelow(2) == 0 else Outcome.TAILS


@dataclass
class FlipOutcome:
    result: Outcome
    streak: int
    session: CoinTossSession
    flip: Flip
    competition: Competition
    settings: GameSettings
    new_achievements: list[Achievement] = field(default_factory=list)

    @property
    def is_on_leaderboard(self) -> bool:
        return self.session.best_heads_streak >= self.settings.min_streak_for_leaderboard

    @property
    def daily_fail_limit(self) -> int:
        return self.settings.daily_fail_limit


class FlipEngine:
    """Processes flips for one request-scoped database session."""

    def __init__(
        self,
        db: AsyncSession,
        draw: CoinDraw = random_draw,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int | None = None,
    ) -> None:
        config = get_settings()
        self.db = db
        self.draw = draw
        self.clock = clock
        self.max_retries = max_retries if max_retries is not None else config.flip_update_max_retries
        self.interval_floor_ms = config.min_flip_interval_ms

    async def flip(self, user_id: int) -> FlipOutcome:
        """Flip once for ``user_id`` in the active competition.

        Raises NoActiveCompetitionError, TooFastError or DailyLimitReachedError
        without mutating the session.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._attempt(user_id)
            except StaleDataError:
                await self.db.rollback()
                logger.warning(
                    "Concurrent flip for user %d detected (attempt %d/%d), retrying",
                    user_id, attempt, self.max_retries,
                )
        logger.warning("Flip for user %d gave up after %d conflicts", user_id, self.max_retries)
        raise TooFastError()

    async def _attempt(self, user_id: int) -> FlipOutcome:
        now = self.clock()
        settings = await get_game_settings(self.db)

        competition = await find_active_competition(self.db, now)
        if competition is None:
            raise NoActiveCompetitionError()

        session = await self._get_or_create_session(competition, user_id)

        # Rate gate
        if session.last_flip_at is not None:
            elapsed = millis_between(session.last_flip_at, now)
            min_interval = min_flip_interval_ms(settings.max_flips_per_minute, self.interval_floor_ms)
            if elapsed < min_interval:
                raise TooFastError(retry_after=round((min_interval - elapsed) / 1000, 3))

        outcome = self.draw()

        # Daily-fail gate runs after the draw; a rejected draw is discarded.
        if outcome is Outcome.TAILS and session.daily_fails_used >= settings.daily_fail_limit:
            raise DailyLimitReachedError(session.daily_fails_used, settings.daily_fail_limit)

        state = apply_flip(SessionState.from_row(session), outcome, now)
        session.total_flips = state.total_flips
        session.total_heads = state.total_heads
        session.total_tails = state.total_tails
        session.current_streak = state.current_streak
        session.best_heads_streak = state.best_heads_streak
        session.best_tails_streak = state.best_tails_streak
        session.daily_fails_used = state.daily_fails_used
        session.last_flip_at = now
        session.updated_at = now

        flip = Flip(
            session_id=session.id,
            user_id=user_id,
            result=outcome.value,
            streak_count=state.streak.length,
            flipped_at=now,
        )
        self.db.add(flip)
        # Flushes the conditional session UPDATE first.
        await self.db.execute(
            update(Competition)
            .where(Competition.id == competition.id)
            .values(total_flips=Competition.total_flips + 1)
        )

        unlocked: list[Achievement] = []
        for value, achievement_type in milestones_reached(state.streak):
            achievement = await self._award(session, achievement_type, value, now)
            if achievement is not None:
                unlocked.append(achievement)

        await self.db.flush()
        await self.db.commit()

        if unlocked:
            logger.info(
                "User %d unlocked %s in competition %d",
                user_id, [a.achievement_type for a in unlocked], competition.id,
            )
        return FlipOutcome(
            result=outcome,
            streak=state.streak.length,
            session=session,
            flip=flip,
            competition=competition,
            settings=settings,
            new_achievements=unlocked,
        )

    async def _get_or_create_session(self, competition: Competition, user_id: int) -> CoinTossSession:
        query = (
            select(CoinTossSession)
            .where(
                CoinTossSession.competition_id == competition.id,
                CoinTossSession.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        session = result.scalars().unique().one_or_none()
        if session is not None:
            return session

        session = CoinTossSession(competition_id=competition.id, user_id=user_id)
        try:
            async with self.db.begin_nested():
                self.db.add(session)
        except IntegrityError:
            result = await self.db.execute(query)
            return result.scalars().unique().one()

        await self.db.execute(
            update(Competition)
            .where(Competition.id == competition.id)
            .values(total_players=Competition.total_players + 1)
        )
        await self.db.commit()
        logger.info("Created session %d for user %d in competition %d", session.id, user_id, competition.id)
        return session

    async def _award(
        self,
        session: CoinTossSession,
        achievement_type: str,
        value: int,
        now: datetime,
    ) -> Achievement | None:
        """Insert the achievement unless this session already has it."""
        existing = await self.db.scalar(
            select(Achievement.id).where(
                Achievement.session_id == session.id,
                Achievement.achievement_type == achievement_type,
            )
        )
        if existing is not None:
            return None

        achievement = Achievement(
            session_id=session.id,
            user_id=session.user_id,
            achievement_type=achievement_type,
            streak_value=value,
            achieved_at=now,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(achievement)
        except IntegrityError:
            return None
        return achievement
