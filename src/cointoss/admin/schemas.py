"""Admin dashboard request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from cointoss.competition.schemas import CompetitionOut, StandingRow
from cointoss.schemas import CamelModel, check_http_url


class TopPlayer(CamelModel):
    username: str
    best_streak: int


class AdminStatsResponse(CamelModel):
    success: bool = True
    total_competitions: int
    active_competitions: int
    total_players: int
    total_flips: int
    top_player: TopPlayer | None = None


class AdminLeaderboardCompetition(CamelModel):
    id: int
    start_time: datetime
    end_time: datetime
    is_active: bool
    min_streak: int


class AdminLeaderboardResponse(CamelModel):
    success: bool = True
    leaderboard: list[StandingRow]
    competition: AdminLeaderboardCompetition


class CompetitionPrizeUpdate(CamelModel):
    competition_id: int = Field(gt=0)
    prize_text: str | None = Field(default=None, max_length=1000)
    prize_image_url: str | None = None
    requires_address: bool | None = None

    @field_validator("prize_image_url")
    @classmethod
    def validate_image_url(cls, value: str | None) -> str | None:
        return check_http_url(value)


class CompetitionPrizeResponse(CamelModel):
    success: bool = True
    message: str
    competition: CompetitionOut


class ResetResponse(CamelModel):
    success: bool = True
    message: str
    reset_time: datetime
    sessions_reset: int


class AuditEntryOut(CamelModel):
    user_id: int | None = None
    action: str
    resource: str
    resource_id: int | str | None = None
    details: dict[str, Any] = {}
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: datetime
    success: bool
    error_message: str | None = None


class AuditLogResponse(CamelModel):
    success: bool = True
    entries: list[AuditEntryOut]
