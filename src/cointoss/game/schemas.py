"""Request/response models for settings, session and flip endpoints."""

from __future__ import annotations

from datetime import datetime

from cointoss.schemas import CamelModel


# --- Settings ---


class GameSettingsOut(CamelModel):
    min_streak_for_leaderboard: int
    competition_duration_hours: int
    max_flips_per_minute: int
    daily_fail_limit: int


class GameSettingsResponse(CamelModel):
    success: bool = True
    settings: GameSettingsOut


class GameSettingsUpdate(CamelModel):
    """Partial update. Range checks happen in the settings service."""

    min_streak_for_leaderboard: int | None = None
    competition_duration_hours: int | None = None
    max_flips_per_minute: int | None = None
    daily_fail_limit: int | None = None


# --- Flip ---


class FlipInfo(CamelModel):
    id: int
    result: str
    streak_count: int
    timestamp: datetime


class FlipSessionSnapshot(CamelModel):
    total_flips: int
    total_heads: int
    total_tails: int
    current_streak: int
    best_heads_streak: int
    best_tails_streak: int
    daily_fails_used: int
    win_rate: str


class UnlockedAchievement(CamelModel):
    type: str
    value: int
    message: str
    label: str
    emoji: str


class FlipResponse(CamelModel):
    success: bool = True
    flip: FlipInfo
    session: FlipSessionSnapshot
    achievements: list[UnlockedAchievement] = []
    is_on_leaderboard: bool
    daily_fail_limit: int


# --- Session ---


class SessionDetail(CamelModel):
    id: int
    total_flips: int
    total_heads: int
    total_tails: int
    current_streak: int
    best_heads_streak: int
    best_tails_streak: int
    win_rate: str
    last_flip_at: datetime | None = None
    daily_fails_used: int


class SessionCompetition(CamelModel):
    id: int
    start_time: datetime
    end_time: datetime
    time_remaining: int
    total_players: int | None = None
    total_flips: int | None = None


class RecentFlip(CamelModel):
    id: int
    result: str
    streak_count: int
    flipped_at: datetime


class SessionAchievement(CamelModel):
    id: int
    achievement_type: str
    streak_value: int
    achieved_at: datetime
    label: str
    emoji: str


class SessionResponse(CamelModel):
    success: bool = True
    session: SessionDetail | None = None
    competition: SessionCompetition | None = None
    daily_fail_limit: int | None = None
    recent_flips: list[RecentFlip] = []
    achievements: list[SessionAchievement] = []
