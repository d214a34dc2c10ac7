"""Player-facing game endpoints: settings, session and flip."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cointoss.admin.audit import AdminAction, AuditLog
from cointoss.auth.dependencies import AuthenticatedUser, get_current_user, require_admin
from cointoss.database import get_session
from cointoss.dependencies import get_audit_log, get_coin_draw
from cointoss.game.flip_engine import CoinDraw, FlipEngine
from cointoss.game.schemas import (
    FlipInfo,
    FlipResponse,
    FlipSessionSnapshot,
    GameSettingsOut,
    GameSettingsResponse,
    GameSettingsUpdate,
    RecentFlip,
    SessionAchievement,
    SessionCompetition,
    SessionDetail,
    SessionResponse,
    UnlockedAchievement,
)
from cointoss.game.session_service import get_session_view
from cointoss.game.settings_service import get_game_settings, update_game_settings
from cointoss.game.streak import achievement_emoji, achievement_label, win_rate_display, win_rate_rounded
from cointoss.middleware.rate_limit import flip_rate_limit, strict_admin_rate_limit
from cointoss.timeutils import ensure_utc, time_remaining_ms

router = APIRouter(prefix="/api/cointoss", tags=["Game"])


# ── Settings ──


@router.get("/settings", response_model=GameSettingsResponse)
async def read_settings(db: AsyncSession = Depends(get_session)) -> GameSettingsResponse:
    settings = await get_game_settings(db)
    await db.commit()
    return GameSettingsResponse(settings=GameSettingsOut.model_validate(settings))


@router.put(
    "/settings",
    response_model=GameSettingsResponse,
    dependencies=[Depends(strict_admin_rate_limit)],
)
async def write_settings(
    body: GameSettingsUpdate,
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    audit: AuditLog = Depends(get_audit_log),
) -> GameSettingsResponse:
    changes = body.model_dump(exclude_none=True)
    with audit.track(AdminAction.UPDATE_SETTINGS, "settings", user_id=admin.id, request=request, details=changes):
        settings = await update_game_settings(db, changes)
    return GameSettingsResponse(settings=GameSettingsOut.model_validate(settings))


# ── Session ──


@router.get("/session", response_model=SessionResponse)
async def read_session(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Current session in the active competition with the last 10 flips."""
    view = await get_session_view(db, user.id)
    if view.competition is None:
        return SessionResponse()

    competition = view.competition
    time_remaining = time_remaining_ms(ensure_utc(competition.end_time))
    if view.session is None:
        return SessionResponse(
            competition=SessionCompetition(
                id=competition.id,
                start_time=ensure_utc(competition.start_time),
                end_time=ensure_utc(competition.end_time),
                time_remaining=time_remaining,
            ),
        )

    session = view.session
    settings = await get_game_settings(db)
    await db.commit()
    return SessionResponse(
        session=SessionDetail(
            id=session.id,
            total_flips=session.total_flips,
            total_heads=session.total_heads,
            total_tails=session.total_tails,
            current_streak=session.current_streak,
            best_heads_streak=session.best_heads_streak,
            best_tails_streak=session.best_tails_streak,
            win_rate=win_rate_display(session.total_heads, session.total_flips),
            last_flip_at=ensure_utc(session.last_flip_at),
            daily_fails_used=session.daily_fails_used,
        ),
        competition=SessionCompetition(
            id=competition.id,
            start_time=ensure_utc(competition.start_time),
            end_time=ensure_utc(competition.end_time),
            time_remaining=time_remaining,
            total_players=competition.total_players,
            total_flips=competition.total_flips,
        ),
        daily_fail_limit=settings.daily_fail_limit,
        recent_flips=[
            RecentFlip(
                id=f.id,
                result=f.result,
                streak_count=f.streak_count,
                flipped_at=ensure_utc(f.flipped_at),
            )
            for f in view.recent_flips
        ],
        achievements=[
            SessionAchievement(
                id=a.id,
                achievement_type=a.achievement_type,
                streak_value=a.streak_value,
                achieved_at=ensure_utc(a.achieved_at),
                label=achievement_label(a.achievement_type),
                emoji=achievement_emoji(a.achievement_type),
            )
            for a in view.achievements
        ],
    )


# ── Flip ──


@router.post("/flip", response_model=FlipResponse)
async def flip_coin(
    user: AuthenticatedUser = Depends(get_current_user),
    _throttle: None = Depends(flip_rate_limit),
    db: AsyncSession = Depends(get_session),
    draw: CoinDraw = Depends(get_coin_draw),
) -> FlipResponse:
    """Flip once in the active competition. Authentication runs before the per-user throttle."""
    outcome = await FlipEngine(db, draw=draw).flip(user.id)
    session = outcome.session
    flip = outcome.flip
    return FlipResponse(
        flip=FlipInfo(
            id=flip.id,
            result=flip.result,
            streak_count=flip.streak_count,
            timestamp=ensure_utc(flip.flipped_at),
        ),
        session=FlipSessionSnapshot(
            total_flips=session.total_flips,
            total_heads=session.total_heads,
            total_tails=session.total_tails,
            current_streak=session.current_streak,
            best_heads_streak=session.best_heads_streak,
            best_tails_streak=session.best_tails_streak,
            daily_fails_used=session.daily_fails_used,
            win_rate=win_rate_rounded(session.total_heads, session.total_flips),
        ),
        achievements=[
            UnlockedAchievement(
                type=a.achievement_type,
                value=a.streak_value,
                message=f"\U0001f389 Amazing! {a.streak_value} heads in a row!",
                label=achievement_label(a.achievement_type),
                emoji=achievement_emoji(a.achievement_type),
            )
            for a in outcome.new_achievements
        ],
        is_on_leaderboard=outcome.is_on_leaderboard,
        daily_fail_limit=outcome.daily_fail_limit,
    )
