"""Leaderboard queries over coin toss sessions."""

from __future__ import annotations

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.db.models import CoinTossSession


async def admin_leaderboard(
    db: AsyncSession,
    competition_id: int,
    *,
    min_streak: int | None = None,
    include_idle: bool = False,
) -> list[CoinTossSession]:
    """Admin standings ordered by best heads streak DESC, then total flips DESC.

    By default lists sessions with at least one flip. ``min_streak`` narrows
    to eligible sessions; ``include_idle`` lists every session.
    """
    query = select(CoinTossSession).where(CoinTossSession.competition_id == competition_id)
    if min_streak is not None:
        query = query.where(CoinTossSession.best_heads_streak >= min_streak)
    elif not include_idle:
        query = query.where(CoinTossSession.total_flips >= 1)
    query = query.order_by(
        CoinTossSession.best_heads_streak.desc(),
        CoinTossSession.total_flips.desc(),
        CoinTossSession.id.asc(),
    )
    result = await db.execute(query)
    return list(result.scalars().unique().all())


async def public_leaderboard(
    db: AsyncSession,
    competition_id: int,
    min_streak: int,
    limit: int = 10,
) -> list[CoinTossSession]:
    """Eligible sessions ordered by best heads streak DESC, then total heads DESC."""
    result = await db.execute(
        select(CoinTossSession)
        .where(
            CoinTossSession.competition_id == competition_id,
            CoinTossSession.best_heads_streak >= min_streak,
        )
        .order_by(
            CoinTossSession.best_heads_streak.desc(),
            CoinTossSession.total_heads.desc(),
            CoinTossSession.id.asc(),
        )
        .limit(limit)
    )
    return list(result.scalars().unique().all())


async def get_user_session(
    db: AsyncSession, competition_id: int, user_id: int,
) -> CoinTossSession | None:
    result = await db.execute(
        select(CoinTossSession).where(
            CoinTossSession.competition_id == competition_id,
            CoinTossSession.user_id == user_id,
        )
    )
    return result.scalars().unique().one_or_none()


async def get_user_rank(
    db: AsyncSession,
    competition_id: int,
    user_id: int,
    min_streak: int,
) -> tuple[int, CoinTossSession] | None:
    """Public rank and session of the user, or None when absent or below ``min_streak``.

    Rank is 1 + the number of eligible sessions with a strictly higher best
    streak, or an equal best streak and strictly more heads.
    """
    mine = await get_user_session(db, competition_id, user_id)
    if mine is None or mine.best_heads_streak < min_streak:
        return None

    ahead = await db.scalar(
        select(func.count())
        .select_from(CoinTossSession)
        .where(
            CoinTossSession.competition_id == competition_id,
            CoinTossSession.best_heads_streak >= min_streak,
            or_(
                CoinTossSession.best_heads_streak > mine.best_heads_streak,
                and_(
                    CoinTossSession.best_heads_streak == mine.best_heads_streak,
                    CoinTossSession.total_heads > mine.total_heads,
                ),
            ),
        )
    )
    return (ahead or 0) + 1, mine
