"""Admin dashboard endpoints: stats, raw leaderboard, prize override, resets, audit trail."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.admin.audit import AdminAction, AuditLog
from cointoss.admin.schemas import (
    AdminLeaderboardCompetition,
    AdminLeaderboardResponse,
    AdminStatsResponse,
    AuditEntryOut,
    AuditLogResponse,
    CompetitionPrizeResponse,
    CompetitionPrizeUpdate,
    ResetResponse,
    TopPlayer,
)
from cointoss.auth.dependencies import AuthenticatedUser, require_admin
from cointoss.competition import competition_service, leaderboard_service
from cointoss.competition.ranking import display_name
from cointoss.competition.schemas import competition_out, standing_rows
from cointoss.database import get_session
from cointoss.db.models import CoinTossSession, Competition, Flip, User
from cointoss.dependencies import get_audit_log
from cointoss.game.session_service import reset_daily_fails
from cointoss.game.settings_service import get_game_settings
from cointoss.middleware.rate_limit import admin_rate_limit, strict_admin_rate_limit
from cointoss.timeutils import ensure_utc, utcnow

router = APIRouter(prefix="/api/cointoss/admin", tags=["Admin"])


@router.get("/stats", response_model=AdminStatsResponse, dependencies=[Depends(admin_rate_limit)])
async def stats(
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminStatsResponse:
    total_competitions = await db.scalar(select(func.count()).select_from(Competition))
    active_competitions = await db.scalar(
        select(func.count()).select_from(Competition).where(Competition.is_active.is_(True))
    )
    total_players = await db.scalar(select(func.count(distinct(CoinTossSession.user_id))))
    total_flips = await db.scalar(select(func.count()).select_from(Flip))

    top = (await db.execute(
        select(User.username, User.wallet_address, CoinTossSession.best_heads_streak)
        .join(User, User.id == CoinTossSession.user_id)
        .order_by(CoinTossSession.best_heads_streak.desc(), CoinTossSession.id.asc())
        .limit(1)
    )).first()

    return AdminStatsResponse(
        total_competitions=total_competitions or 0,
        active_competitions=active_competitions or 0,
        total_players=total_players or 0,
        total_flips=total_flips or 0,
        top_player=TopPlayer(
            username=display_name(top.username, top.wallet_address),
            best_streak=top.best_heads_streak or 0,
        ) if top else None,
    )


@router.get("/leaderboard", response_model=AdminLeaderboardResponse, dependencies=[Depends(admin_rate_limit)])
async def admin_leaderboard(
    competition_id: int = Query(..., alias="competitionId", ge=1),
    show_all: bool = Query(False, alias="showAll"),
    _admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminLeaderboardResponse:
    """Every session with ``showAll``, otherwise eligible ones; best streak then total flips."""
    competition = await competition_service.get_competition(db, competition_id)
    settings = await get_game_settings(db)
    await db.commit()
    min_streak = settings.min_streak_for_leaderboard

    if show_all:
        sessions = await leaderboard_service.admin_leaderboard(db, competition_id, include_idle=True)
    else:
        sessions = await leaderboard_service.admin_leaderboard(db, competition_id, min_streak=min_streak)

    return AdminLeaderboardResponse(
        leaderboard=standing_rows(sessions),
        competition=AdminLeaderboardCompetition(
            id=competition.id,
            start_time=ensure_utc(competition.start_time),
            end_time=ensure_utc(competition.end_time),
            is_active=competition.is_active,
            min_streak=min_streak,
        ),
    )


@router.put("/prize", response_model=CompetitionPrizeResponse, dependencies=[Depends(strict_admin_rate_limit)])
async def update_competition_prize(
    body: CompetitionPrizeUpdate,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> CompetitionPrizeResponse:
    """Override the prize shown on one competition."""
    with audit.track(
        AdminAction.UPDATE_PRIZE, "competition", body.competition_id,
        user_id=admin.id, request=request,
        details={"prizeText": body.prize_text, "prizeImageUrl": body.prize_image_url},
    ):
        competition = await competition_service.get_competition(db, body.competition_id)
        competition.prize_text = body.prize_text or None
        competition.prize_image_url = body.prize_image_url
        if body.requires_address is not None:
            competition.requires_address = body.requires_address
        competition.updated_at = utcnow()
        await db.commit()
    return CompetitionPrizeResponse(
        message="Prize updated successfully",
        competition=competition_out(competition),
    )


@router.post("/reset", response_model=ResetResponse, dependencies=[Depends(strict_admin_rate_limit)])
async def reset_daily(
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> ResetResponse:
    """Give every player in the active competition their daily fails back."""
    now = utcnow()
    with audit.track(
        AdminAction.RESET_DAILY_FAILS, "daily_stats", 0,
        user_id=admin.id, request=request, details={"resetTime": now.isoformat()},
    ) as details:
        count = await reset_daily_fails(db)
        details["sessionsReset"] = count
    return ResetResponse(
        message="Daily stats reset successfully",
        reset_time=now,
        sessions_reset=count,
    )


@router.get("/audit", response_model=AuditLogResponse, dependencies=[Depends(admin_rate_limit)])
async def audit_trail(
    user_id: int | None = Query(None, alias="userId"),
    action: str | None = Query(None),
    resource: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    _admin: AuthenticatedUser = Depends(require_admin),
    audit: AuditLog = Depends(get_audit_log),
) -> AuditLogResponse:
    entries = audit.query(user_id=user_id, action=action, resource=resource, limit=limit)
    return AuditLogResponse(entries=[AuditEntryOut.model_validate(e.to_dict()) for e in entries])
