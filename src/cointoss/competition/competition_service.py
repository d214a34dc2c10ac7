"""Competition lifecycle: get-or-create, manual end, forced creation, expiry sweep.

Only one competition may have ``is_active = true`` at a time; the partial
unique index ``uq_coin_toss_competitions_single_active`` enforces it and a
creation that loses the race re-reads the winner's row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.competition.leaderboard_service import admin_leaderboard
from cointoss.competition.ranking import CompetitionStatus, derive_status
from cointoss.competition.winner_service import auto_select_winners
from cointoss.db.models import CoinTossSession, Competition
from cointoss.errors import ConflictError, NotFoundError
from cointoss.game.settings_service import get_game_settings
from cointoss.prizes.service import get_default_prize
from cointoss.timeutils import utcnow

logger = logging.getLogger(__name__)


def competition_status(competition: Competition, now: datetime | None = None) -> CompetitionStatus:
    return derive_status(
        competition.is_active,
        competition.end_time,
        competition.winners_selected,
        competition.prize_delivered,
        now or utcnow(),
    )


async def get_competition(db: AsyncSession, competition_id: int) -> Competition:
    competition = await db.get(Competition, competition_id)
    if competition is None:
        raise NotFoundError("Competition not found")
    return competition


async def find_active_competition(db: AsyncSession, now: datetime | None = None) -> Competition | None:
    """Competition that is flagged active and whose window covers ``now``."""
    now = now or utcnow()
    result = await db.execute(
        select(Competition)
        .where(
            Competition.is_active.is_(True),
            Competition.start_time <= now,
            Competition.end_time >= now,
        )
        .order_by(Competition.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _deactivate_stale(db: AsyncSession, now: datetime) -> int:
    result = await db.execute(
        update(Competition)
        .where(Competition.is_active.is_(True), Competition.end_time < now)
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        logger.info("Deactivated %d stale competition(s)", result.rowcount)
    return result.rowcount or 0


async def _new_competition(
    db: AsyncSession,
    now: datetime,
    duration_hours: int,
    use_default_prize: bool,
) -> Competition:
    competition = Competition(
        start_time=now,
        end_time=now + timedelta(hours=duration_hours),
        is_active=True,
    )
    if use_default_prize:
        prize = await get_default_prize(db)
        if prize is not None and prize.is_active:
            competition.prize_text = prize.description
            competition.prize_image_url = prize.image_url
            competition.requires_address = prize.requires_address
    return competition


async def get_or_create_active(db: AsyncSession, now: datetime | None = None) -> Competition:
    """Return the active competition, replacing a stale one or creating the first.

    Stale rows (flagged active but already past their end time) are closed
    before the lookup. A new competition lasts the configured duration and
    carries the catalog's default prize when there is one.
    """
    now = now or utcnow()
    await _deactivate_stale(db, now)

    competition = await find_active_competition(db, now)
    if competition is not None:
        await db.commit()
        return competition

    settings = await get_game_settings(db)
    competition = await _new_competition(
        db, now, settings.competition_duration_hours, use_default_prize=True,
    )
    try:
        async with db.begin_nested():
            db.add(competition)
    except IntegrityError:
        # Another request created the active competition first.
        result = await db.execute(select(Competition).where(Competition.is_active.is_(True)))
        existing = result.scalar_one_or_none()
        if existing is None:
            raise
        await db.commit()
        return existing

    await db.commit()
    logger.info("Created competition %d ending %s", competition.id, competition.end_time.isoformat())
    return competition


async def create_new_competition(
    db: AsyncSession,
    *,
    duration_hours: int | None = None,
    use_default_prize: bool = True,
    now: datetime | None = None,
) -> Competition:
    """End every active competition and start a fresh one."""
    now = now or utcnow()
    if duration_hours is None:
        settings = await get_game_settings(db)
        duration_hours = settings.competition_duration_hours

    result = await db.execute(
        update(Competition)
        .where(Competition.is_active.is_(True))
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    ended = result.rowcount or 0

    competition = await _new_competition(db, now, duration_hours, use_default_prize)
    db.add(competition)
    await db.commit()
    logger.info(
        "Created competition %d (%dh, default prize=%s), ended %d active",
        competition.id, duration_hours, use_default_prize, ended,
    )
    return competition


async def end_competition(
    db: AsyncSession,
    competition_id: int,
    now: datetime | None = None,
) -> tuple[Competition, list[CoinTossSession]]:
    """Close an active competition now. Returns it with its final standings."""
    now = now or utcnow()
    competition = await get_competition(db, competition_id)
    if not competition.is_active:
        raise ConflictError("Competition is already ended")

    standings = await admin_leaderboard(db, competition_id)

    competition.is_active = False
    competition.end_time = now
    competition.updated_at = now
    await db.commit()

    logger.info("Competition %d ended manually with %d players", competition_id, len(standings))
    return competition, standings


@dataclass(frozen=True)
class ExpiredCompetition:
    id: int
    end_time: datetime
    winners_selected: bool


@dataclass
class ExpiredSweepResult:
    processed: list[ExpiredCompetition] = field(default_factory=list)
    no_eligible: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.processed)


async def process_expired(
    db: AsyncSession,
    now: datetime | None = None,
    top_count: int = 3,
) -> ExpiredSweepResult:
    """Close every active competition whose end time has passed and auto-pick winners.

    Idempotent: once all expired competitions are closed a rerun finds nothing.
    Competitions with no eligible session are closed without winners.
    Each processed entry reports whether winners had been selected before
    this sweep ran.
    """
    now = now or utcnow()
    result = await db.execute(
        select(Competition)
        .where(Competition.is_active.is_(True), Competition.end_time <= now)
        .order_by(Competition.id)
    )
    expired = list(result.scalars().all())
    summary = ExpiredSweepResult()
    if not expired:
        return summary

    settings = await get_game_settings(db)
    for competition in expired:
        competition.is_active = False
        competition.updated_at = now
        await db.flush()

        already_selected = bool(competition.winners_selected)
        if not already_selected:
            eligible = await db.scalar(
                select(func.count())
                .select_from(CoinTossSession)
                .where(
                    CoinTossSession.competition_id == competition.id,
                    CoinTossSession.best_heads_streak >= settings.min_streak_for_leaderboard,
                )
            )
            if eligible:
                await auto_select_winners(
                    db, competition.id, top_count, selected_by_id=None, now=now, commit=False,
                )
            else:
                summary.no_eligible.append(competition.id)
                logger.info("Competition %d expired with no eligible players", competition.id)

        summary.processed.append(ExpiredCompetition(
            id=competition.id,
            end_time=competition.end_time,
            winners_selected=already_selected,
        ))

    await db.commit()
    logger.info(
        "Expired sweep: processed=%d no_eligible=%s",
        summary.count, summary.no_eligible,
    )
    return summary
