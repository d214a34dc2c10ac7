"""Competition lifecycle, winners and leaderboard endpoints."""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.admin.audit import AdminAction, AuditLog
from cointoss.auth.dependencies import AuthenticatedUser, get_optional_user, require_admin
from cointoss.competition import competition_service, leaderboard_service, winner_service
from cointoss.competition.ranking import display_name
from cointoss.competition.schemas import (
    ActiveCompetitionOut,
    ActiveCompetitionResponse,
    AutoWinnersRequest,
    CompetitionCreateRequest,
    CompetitionDetailResponse,
    CompetitionListResponse,
    CompetitionResponse,
    EndCompetitionResponse,
    LeaderboardCompetition,
    LeaderboardResponse,
    LeaderboardRow,
    Pagination,
    ProcessedCompetition,
    ProcessExpiredResponse,
    SelectWinnersRequest,
    UserRankOut,
    WinnersResponse,
    competition_out,
    competition_summary,
    standing_rows,
    winner_rows,
)
from cointoss.competition.winner_service import WinnerChoice
from cointoss.config import get_settings
from cointoss.database import get_session
from cointoss.db.models import Competition, Winner
from cointoss.dependencies import get_audit_log
from cointoss.game.settings_service import get_game_settings
from cointoss.game.streak import win_rate_display
from cointoss.middleware.rate_limit import admin_rate_limit, strict_admin_rate_limit
from cointoss.schemas import MessageResponse
from cointoss.timeutils import ensure_utc, format_time_remaining, time_remaining_ms, utcnow

router = APIRouter(prefix="/api/cointoss", tags=["Competition"])


# ── Public ──


@router.get("/competition", response_model=ActiveCompetitionResponse)
async def current_competition(db: AsyncSession = Depends(get_session)) -> ActiveCompetitionResponse:
    """Active competition, created on demand."""
    now = utcnow()
    competition = await competition_service.get_or_create_active(db, now)
    base = competition_out(competition)
    remaining = time_remaining_ms(base.end_time, now)
    return ActiveCompetitionResponse(
        competition=ActiveCompetitionOut(
            **base.model_dump(),
            time_remaining=remaining,
            time_remaining_formatted=format_time_remaining(remaining),
            status=competition_service.competition_status(competition, now).value,
        ),
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    competition_id: int | None = Query(None, alias="competitionId", ge=1),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Eligible players ranked by best heads streak, then total heads."""
    settings = await get_game_settings(db)
    await db.commit()
    min_streak = settings.min_streak_for_leaderboard

    if competition_id is not None:
        competition = await db.get(Competition, competition_id)
    else:
        competition = await competition_service.find_active_competition(db)
    if competition is None:
        return LeaderboardResponse()

    sessions = await leaderboard_service.public_leaderboard(db, competition.id, min_streak, limit)
    rows = [
        LeaderboardRow(
            rank=idx + 1,
            user_id=s.user_id,
            username=display_name(
                s.user.username if s.user else None,
                s.user.wallet_address if s.user else None,
            ),
            wallet_address=s.user.wallet_address if s.user else None,
            avatar_url=s.user.avatar_url if s.user else None,
            best_heads_streak=s.best_heads_streak,
            total_flips=s.total_flips,
            total_heads=s.total_heads,
            win_rate=win_rate_display(s.total_heads, s.total_flips),
            is_current_user=user is not None and s.user_id == user.id,
        )
        for idx, s in enumerate(sessions)
    ]

    user_rank: UserRankOut | None = None
    if user is not None:
        ranked = await leaderboard_service.get_user_rank(db, competition.id, user.id, min_streak)
        if ranked is not None:
            rank, mine = ranked
            user_rank = UserRankOut(
                rank=rank,
                best_heads_streak=mine.best_heads_streak,
                total_flips=mine.total_flips,
                total_heads=mine.total_heads,
                win_rate=win_rate_display(mine.total_heads, mine.total_flips),
            )

    end_time = ensure_utc(competition.end_time)
    return LeaderboardResponse(
        leaderboard=rows,
        user_rank=user_rank,
        competition=LeaderboardCompetition(
            id=competition.id,
            start_time=ensure_utc(competition.start_time),
            end_time=end_time,
            is_active=competition.is_active,
            total_players=competition.total_players,
            total_flips=competition.total_flips,
            time_remaining=time_remaining_ms(end_time),
        ),
        min_streak_required=min_streak,
    )


# ── Admin ──


@router.post(
    "/competition",
    response_model=CompetitionResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def create_competition(
    request: Request,
    body: CompetitionCreateRequest | None = None,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> CompetitionResponse:
    """End any active competition and start a new one."""
    body = body or CompetitionCreateRequest()
    with audit.track(
        AdminAction.CREATE_COMPETITION, "competition",
        user_id=admin.id, request=request, details=body.model_dump(),
    ) as details:
        competition = await competition_service.create_new_competition(
            db, duration_hours=body.duration_hours, use_default_prize=body.use_default_prize,
        )
        details["competitionId"] = competition.id
    return CompetitionResponse(competition=competition_out(competition))


@router.get(
    "/competitions",
    response_model=CompetitionListResponse,
    dependencies=[Depends(admin_rate_limit)],
)
async def list_competitions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    include_active: bool = Query(False, alias="includeActive"),
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> CompetitionListResponse:
    """Competitions newest first. Ended ones only unless ``includeActive``."""
    filters = [] if include_active else [Competition.is_active.is_(False)]
    total_count = await db.scalar(select(func.count()).select_from(Competition).where(*filters)) or 0

    winner_count = (
        select(func.count(Winner.id))
        .where(Winner.competition_id == Competition.id)
        .correlate(Competition)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Competition, winner_count)
        .where(*filters)
        .order_by(Competition.start_time.desc(), Competition.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    now = utcnow()
    return CompetitionListResponse(
        competitions=[competition_summary(c, now, count or 0) for c, count in result.all()],
        pagination=Pagination(
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=math.ceil(total_count / limit),
        ),
    )


@router.post(
    "/competitions/process-expired",
    response_model=ProcessExpiredResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def process_expired(
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> ProcessExpiredResponse:
    with audit.track(AdminAction.PROCESS_EXPIRED, "competition", user_id=admin.id, request=request) as details:
        result = await competition_service.process_expired(
            db, top_count=get_settings().auto_winner_count,
        )
        details["processed"] = [p.id for p in result.processed]
    return ProcessExpiredResponse(
        message=f"Processed {result.count} expired competitions",
        processed=[
            ProcessedCompetition(id=p.id, end_time=ensure_utc(p.end_time), winners_selected=p.winners_selected)
            for p in result.processed
        ],
    )


@router.get(
    "/competitions/{competition_id}",
    response_model=CompetitionDetailResponse,
    dependencies=[Depends(admin_rate_limit)],
)
async def competition_detail(
    competition_id: int,
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> CompetitionDetailResponse:
    competition = await competition_service.get_competition(db, competition_id)
    standings = await leaderboard_service.admin_leaderboard(db, competition_id)
    winners = await winner_service.get_winners(db, competition_id)
    return CompetitionDetailResponse(
        competition=competition_summary(competition, utcnow(), len(winners)),
        leaderboard=standing_rows(standings),
        winners=winner_rows(winners),
    )


@router.post(
    "/competitions/{competition_id}/end",
    response_model=EndCompetitionResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def end_competition(
    competition_id: int,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> EndCompetitionResponse:
    with audit.track(
        AdminAction.END_COMPETITION, "competition", competition_id, user_id=admin.id, request=request,
    ) as details:
        competition, standings = await competition_service.end_competition(db, competition_id)
        details["players"] = len(standings)
    return EndCompetitionResponse(
        message="Competition ended successfully",
        leaderboard=standing_rows(standings),
        competition=competition_summary(competition, utcnow()),
    )


@router.post(
    "/competitions/{competition_id}/auto-winners",
    response_model=WinnersResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def auto_winners(
    competition_id: int,
    request: Request,
    body: AutoWinnersRequest | None = None,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> WinnersResponse:
    body = body or AutoWinnersRequest()
    with audit.track(
        AdminAction.AUTO_SELECT_WINNERS, "competition", competition_id,
        user_id=admin.id, request=request, details={"topCount": body.top_count},
    ) as details:
        winners = await winner_service.auto_select_winners(
            db, competition_id, body.top_count, selected_by_id=admin.id,
        )
        details["winnerIds"] = [w.user_id for w in winners]
    winners = await winner_service.get_winners(db, competition_id)
    return WinnersResponse(
        message=f"{len(winners)} winners selected successfully",
        winners=winner_rows(winners),
    )


@router.get(
    "/competitions/{competition_id}/winners",
    response_model=WinnersResponse,
    dependencies=[Depends(admin_rate_limit)],
)
async def read_winners(
    competition_id: int,
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> WinnersResponse:
    await competition_service.get_competition(db, competition_id)
    winners = await winner_service.get_winners(db, competition_id)
    return WinnersResponse(winners=winner_rows(winners))


@router.post(
    "/competitions/{competition_id}/winners",
    response_model=WinnersResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def select_winners(
    competition_id: int,
    body: SelectWinnersRequest,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> WinnersResponse:
    """Replace the competition's winners with the given ordering."""
    choices = [
        WinnerChoice(user_id=w.user_id, final_streak=w.final_streak, position=w.position)
        for w in body.winners
    ]
    with audit.track(
        AdminAction.SELECT_WINNERS, "competition", competition_id,
        user_id=admin.id, request=request,
        details={"winnersCount": len(choices), "winnerIds": [c.user_id for c in choices]},
    ):
        await winner_service.manual_select_winners(db, competition_id, choices, selected_by_id=admin.id)
    winners = await winner_service.get_winners(db, competition_id)
    return WinnersResponse(
        message=f"{len(winners)} winners selected successfully",
        winners=winner_rows(winners),
    )


@router.post(
    "/competitions/{competition_id}/prize-delivered",
    response_model=MessageResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def prize_delivered(
    competition_id: int,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> MessageResponse:
    with audit.track(
        AdminAction.MARK_PRIZE_DELIVERED, "competition", competition_id, user_id=admin.id, request=request,
    ):
        await winner_service.mark_prize_delivered(db, competition_id)
    return MessageResponse(message="Prize marked as delivered")
