"""Request/response models for competition, winner and leaderboard endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from pydantic import Field

from cointoss.competition.ranking import derive_status, display_name
from cointoss.db.models import CoinTossSession, Competition, Winner
from cointoss.game.streak import win_rate_display
from cointoss.schemas import CamelModel
from cointoss.timeutils import ensure_utc, time_remaining_ms


# --- Competition ---


class CompetitionOut(CamelModel):
    id: int
    start_time: datetime
    end_time: datetime
    is_active: bool
    winner_user_id: int | None = None
    total_players: int
    total_flips: int
    prize_text: str | None = None
    prize_image_url: str | None = None
    requires_address: bool = False
    winners_selected: bool = False
    prize_delivered: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ActiveCompetitionOut(CompetitionOut):
    time_remaining: int
    time_remaining_formatted: str
    status: str


class ActiveCompetitionResponse(CamelModel):
    success: bool = True
    competition: ActiveCompetitionOut


class CompetitionCreateRequest(CamelModel):
    duration_hours: int | None = Field(default=None, ge=1, le=24 * 30)
    use_default_prize: bool = True


class CompetitionResponse(CamelModel):
    success: bool = True
    competition: CompetitionOut


class CompetitionSummary(CompetitionOut):
    time_remaining: int
    status: str
    winner_count: int = 0


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class CompetitionListResponse(CamelModel):
    success: bool = True
    competitions: list[CompetitionSummary]
    pagination: Pagination


# --- Standings & winners ---


class StandingRow(CamelModel):
    rank: int
    user_id: int
    username: str | None = None
    wallet_address: str | None = None
    display_name: str
    best_heads_streak: int
    total_flips: int
    total_heads: int
    total_tails: int
    win_rate: str


class WinnerOut(CamelModel):
    id: int
    user_id: int
    final_streak: int
    position: int
    selected_at: datetime
    username: str | None = None
    wallet_address: str | None = None
    display_name: str


class CompetitionDetailResponse(CamelModel):
    success: bool = True
    competition: CompetitionSummary
    leaderboard: list[StandingRow]
    winners: list[WinnerOut]


class EndCompetitionResponse(CamelModel):
    success: bool = True
    message: str
    leaderboard: list[StandingRow]
    competition: CompetitionSummary


class AutoWinnersRequest(CamelModel):
    top_count: int = Field(default=3, ge=1, le=10)


class WinnerChoiceIn(CamelModel):
    user_id: int = Field(gt=0)
    final_streak: int | None = Field(default=None, ge=0)
    position: int | None = Field(default=None, ge=1)


class SelectWinnersRequest(CamelModel):
    winners: list[WinnerChoiceIn] = Field(min_length=1, max_length=10)


class WinnersResponse(CamelModel):
    success: bool = True
    message: str | None = None
    winners: list[WinnerOut]


class ProcessedCompetition(CamelModel):
    id: int
    end_time: datetime
    winners_selected: bool


class ProcessExpiredResponse(CamelModel):
    success: bool = True
    message: str
    processed: list[ProcessedCompetition]


# --- Public leaderboard ---


class LeaderboardRow(CamelModel):
    rank: int
    user_id: int
    username: str
    wallet_address: str | None = None
    avatar_url: str | None = None
    best_heads_streak: int
    total_flips: int
    total_heads: int
    win_rate: str
    is_current_user: bool = False


class UserRankOut(CamelModel):
    rank: int
    best_heads_streak: int
    total_flips: int
    total_heads: int
    win_rate: str


class LeaderboardCompetition(CamelModel):
    id: int
    start_time: datetime
    end_time: datetime
    is_active: bool
    total_players: int
    total_flips: int
    time_remaining: int


class LeaderboardResponse(CamelModel):
    success: bool = True
    leaderboard: list[LeaderboardRow] = []
    user_rank: UserRankOut | None = None
    competition: LeaderboardCompetition | None = None
    min_streak_required: int | None = None


# --- Builders ---


def competition_out(competition: Competition) -> CompetitionOut:
    out = CompetitionOut.model_validate(competition)
    out.start_time = ensure_utc(out.start_time)
    out.end_time = ensure_utc(out.end_time)
    return out


def competition_summary(competition: Competition, now: datetime, winner_count: int = 0) -> CompetitionSummary:
    base = competition_out(competition)
    status = derive_status(
        competition.is_active, competition.end_time,
        competition.winners_selected, competition.prize_delivered, now,
    )
    return CompetitionSummary(
        **base.model_dump(),
        time_remaining=time_remaining_ms(base.end_time, now) if competition.is_active else 0,
        status=status.value,
        winner_count=winner_count,
    )


def standing_rows(sessions: Sequence[CoinTossSession]) -> list[StandingRow]:
    """Admin standings; rank follows the given order."""
    rows = []
    for idx, s in enumerate(sessions):
        username = s.user.username if s.user else None
        wallet = s.user.wallet_address if s.user else None
        rows.append(StandingRow(
            rank=idx + 1,
            user_id=s.user_id,
            username=username,
            wallet_address=wallet,
            display_name=display_name(username, wallet),
            best_heads_streak=s.best_heads_streak,
            total_flips=s.total_flips,
            total_heads=s.total_heads,
            total_tails=s.total_tails,
            win_rate=win_rate_display(s.total_heads, s.total_flips),
        ))
    return rows


def winner_rows(winners: Sequence[Winner]) -> list[WinnerOut]:
    rows = []
    for w in winners:
        username = w.user.username if w.user else None
        wallet = w.user.wallet_address if w.user else None
        rows.append(WinnerOut(
            id=w.id,
            user_id=w.user_id,
            final_streak=w.final_streak,
            position=w.position,
            selected_at=ensure_utc(w.selected_at),
            username=username,
            wallet_address=wallet,
            display_name=display_name(username, wallet),
        ))
    return rows
