"""Winner selection (automatic and manual) and prize delivery tracking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.competition.ranking import pick_winners
from cointoss.db.models import CoinTossSession, Competition, User, Winner
from cointoss.errors import ConflictError, NotFoundError, ValidationError
from cointoss.game.settings_service import get_game_settings
from cointoss.timeutils import utcnow

logger = logging.getLogger(__name__)

MAX_MANUAL_WINNERS = 10


@dataclass(frozen=True)
class WinnerChoice:
    """One admin-supplied winner. Missing ``final_streak`` falls back to the session best."""

    user_id: int
    final_streak: int | None = None
    position: int | None = None


async def _load_competition(db: AsyncSession, competition_id: int) -> Competition:
    competition = await db.get(Competition, competition_id)
    if competition is None:
        raise NotFoundError("Competition not found")
    return competition


async def get_winners(db: AsyncSession, competition_id: int) -> list[Winner]:
    result = await db.execute(
        select(Winner)
        .where(Winner.competition_id == competition_id)
        .order_by(Winner.position)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().unique().all())


async def auto_select_winners(
    db: AsyncSession,
    competition_id: int,
    top_count: int = 3,
    *,
    selected_by_id: int | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> list[Winner]:
    """Record the top eligible sessions of an ended competition as winners.

    Ties on best heads streak go to the earlier session.
    """
    now = now or utcnow()
    if top_count < 1:
        raise ValidationError("topCount must be at least 1")

    competition = await _load_competition(db, competition_id)
    if competition.is_active:
        raise ConflictError("Cannot select winners for active competition")
    if competition.winners_selected:
        raise ConflictError("Winners already selected for this competition")

    settings = await get_game_settings(db)
    result = await db.execute(
        select(CoinTossSession).where(CoinTossSession.competition_id == competition_id)
    )
    sessions = list(result.scalars().unique().all())
    picked = pick_winners(sessions, settings.min_streak_for_leaderboard, top_count)
    if not picked:
        raise ConflictError("No eligible players found for this competition")

    winners = [
        Winner(
            competition_id=competition_id,
            user_id=session.user_id,
            final_streak=session.best_heads_streak,
            position=position,
            selected_at=now,
            selected_by_id=selected_by_id,
        )
        for position, session in picked
    ]
    db.add_all(winners)

    competition.winners_selected = True
    competition.winner_user_id = winners[0].user_id
    competition.updated_at = now

    if commit:
        await db.commit()
    else:
        await db.flush()

    logger.info(
        "Auto-selected %d winner(s) for competition %d: %s",
        len(winners), competition_id, [w.user_id for w in winners],
    )
    return winners


async def manual_select_winners(
    db: AsyncSession,
    competition_id: int,
    choices: list[WinnerChoice],
    *,
    selected_by_id: int | None = None,
    now: datetime | None = None,
) -> list[Winner]:
    """Replace all winners of an ended competition with the given ordering.

    Positions follow list order (1..N); any client-sent position is ignored
    so the set stays contiguous.
    """
    now = now or utcnow()
    if not 1 <= len(choices) <= MAX_MANUAL_WINNERS:
        raise ValidationError(f"Between 1 and {MAX_MANUAL_WINNERS} winners must be provided")
    user_ids = [c.user_id for c in choices]
    if len(set(user_ids)) != len(user_ids):
        raise ValidationError("Each user can only be selected once")

    competition = await _load_competition(db, competition_id)
    if competition.is_active:
        raise ConflictError("Cannot select winners for an active competition. End it first.")

    result = await db.execute(
        select(CoinTossSession).where(
            CoinTossSession.competition_id == competition_id,
            CoinTossSession.user_id.in_(user_ids),
        )
    )
    best_by_user = {s.user_id: s.best_heads_streak for s in result.scalars().unique().all()}

    known = set((await db.execute(select(User.id).where(User.id.in_(user_ids)))).scalars().all())
    missing = [uid for uid in user_ids if uid not in known]
    if missing:
        raise NotFoundError(f"User {missing[0]} not found")

    await db.execute(
        delete(Winner)
        .where(Winner.competition_id == competition_id)
        .execution_options(synchronize_session="fetch")
    )

    winners: list[Winner] = []
    for position, choice in enumerate(choices, start=1):
        final_streak = choice.final_streak
        if final_streak is None:
            final_streak = best_by_user.get(choice.user_id, 0)
        winners.append(Winner(
            competition_id=competition_id,
            user_id=choice.user_id,
            final_streak=final_streak,
            position=position,
            selected_at=now,
            selected_by_id=selected_by_id,
        ))
    db.add_all(winners)

    competition.winners_selected = True
    competition.winner_user_id = winners[0].user_id
    competition.updated_at = now
    await db.commit()

    logger.info(
        "Manually selected %d winner(s) for competition %d by admin %s",
        len(winners), competition_id, selected_by_id,
    )
    return winners


async def mark_prize_delivered(db: AsyncSession, competition_id: int) -> Competition:
    competition = await _load_competition(db, competition_id)
    if not competition.winners_selected:
        raise ConflictError("Cannot mark prize as delivered before selecting winners")
    competition.prize_delivered = True
    competition.updated_at = utcnow()
    await db.commit()
    logger.info("Prize for competition %d marked delivered", competition_id)
    return competition
