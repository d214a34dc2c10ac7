"""Read-side helpers for a player's session, plus the admin daily-fail reset."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.competition.competition_service import find_active_competition
from cointoss.competition.leaderboard_service import get_user_session
from cointoss.db.models import Achievement, CoinTossSession, Competition, Flip
from cointoss.timeutils import utcnow

logger = logging.getLogger(__name__)

RECENT_FLIPS_LIMIT = 10


@dataclass
class SessionView:
    competition: Competition | None = None
    session: CoinTossSession | None = None
    recent_flips: list[Flip] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)


async def recent_flips(db: AsyncSession, session_id: int, limit: int = RECENT_FLIPS_LIMIT) -> list[Flip]:
    """Last ``limit`` flips, returned oldest first."""
    result = await db.execute(
        select(Flip)
        .where(Flip.session_id == session_id)
        .order_by(Flip.flipped_at.desc(), Flip.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


async def session_achievements(db: AsyncSession, session_id: int) -> list[Achievement]:
    result = await db.execute(
        select(Achievement)
        .where(Achievement.session_id == session_id)
        .order_by(Achievement.streak_value)
    )
    return list(result.scalars().all())


async def get_session_view(db: AsyncSession, user_id: int) -> SessionView:
    """Current user's session in the active competition, if any."""
    competition = await find_active_competition(db)
    if competition is None:
        return SessionView()

    session = await get_user_session(db, competition.id, user_id)
    if session is None:
        return SessionView(competition=competition)

    return SessionView(
        competition=competition,
        session=session,
        recent_flips=await recent_flips(db, session.id),
        achievements=await session_achievements(db, session.id),
    )


async def reset_daily_fails(db: AsyncSession) -> int:
    """Zero ``daily_fails_used`` for every session of the active competition.

    Bumps each row's version so an in-flight flip re-reads the reset value.
    Returns the number of sessions reset (0 when nothing is active).
    """
    competition = await find_active_competition(db)
    if competition is None:
        return 0

    result = await db.execute(
        update(CoinTossSession)
        .where(
            CoinTossSession.competition_id == competition.id,
            CoinTossSession.daily_fails_used > 0,
        )
        .values(
            daily_fails_used=0,
            version=CoinTossSession.version + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = result.rowcount or 0
    logger.info("Reset daily fails for %d session(s) in competition %d", count, competition.id)
    return count
