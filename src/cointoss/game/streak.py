"""Streak state and the pure per-flip transition.

The persisted ``current_streak`` column is a signed integer (positive =
heads run, negative = tails run, 0 = no flips yet). In code it is handled
as an explicit ``Streak(direction, length)`` value and converted at the
storage/API boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class Outcome(str, Enum):
    HEADS = "heads"
    TAILS = "tails"


class Direction(str, Enum):
    NONE = "none"
    HEADS = "heads"
    TAILS = "tails"


@dataclass(frozen=True)
class Streak:
    """Current run of identical outcomes."""

    direction: Direction = Direction.NONE
    length: int = 0

    @classmethod
    def from_signed(cls, value: int | None) -> Streak:
        if not value:
            return cls()
        if value > 0:
            return cls(Direction.HEADS, value)
        return cls(Direction.TAILS, -value)

    def to_signed(self) -> int:
        if self.direction is Direction.HEADS:
            return self.length
        if self.direction is Direction.TAILS:
            return -self.length
        return 0

    def advance(self, outcome: Outcome) -> Streak:
        """Extend the run when the outcome matches its direction, otherwise restart at 1."""
        direction = Direction.HEADS if outcome is Outcome.HEADS else Direction.TAILS
        if self.direction is direction:
            return Streak(direction, self.length + 1)
        return Streak(direction, 1)


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a session's counters, independent of the ORM row."""

    total_flips: int = 0
    total_heads: int = 0
    total_tails: int = 0
    streak: Streak = Streak()
    best_heads_streak: int = 0
    best_tails_streak: int = 0
    daily_fails_used: int = 0
    last_flip_at: datetime | None = None

    @classmethod
    def from_row(cls, row: object) -> SessionState:
        return cls(
            total_flips=getattr(row, "total_flips", 0) or 0,
            total_heads=getattr(row, "total_heads", 0) or 0,
            total_tails=getattr(row, "total_tails", 0) or 0,
            streak=Streak.from_signed(getattr(row, "current_streak", 0)),
            best_heads_streak=getattr(row, "best_heads_streak", 0) or 0,
            best_tails_streak=getattr(row, "best_tails_streak", 0) or 0,
            daily_fails_used=getattr(row, "daily_fails_used", 0) or 0,
            last_flip_at=getattr(row, "last_flip_at", None),
        )

    @property
    def current_streak(self) -> int:
        return self.streak.to_signed()


def apply_flip(state: SessionState, outcome: Outcome, flipped_at: datetime) -> SessionState:
    """Return the session state after one accepted flip."""
    streak = state.streak.advance(outcome)
    heads = outcome is Outcome.HEADS

    best_heads = state.best_heads_streak
    best_tails = state.best_tails_streak
    if heads:
        best_heads = max(best_heads, streak.length)
    else:
        best_tails = max(best_tails, streak.length)

    return replace(
        state,
        total_flips=state.total_flips + 1,
        total_heads=state.total_heads + (1 if heads else 0),
        total_tails=state.total_tails + (0 if heads else 1),
        streak=streak,
        best_heads_streak=best_heads,
        best_tails_streak=best_tails,
        daily_fails_used=state.daily_fails_used + (0 if heads else 1),
        last_flip_at=flipped_at,
    )


# --- Achievements ---

ACHIEVEMENT_MILESTONES: dict[int, str] = {
    5: "streak_5",
    10: "streak_10",
    15: "streak_15",
    20: "streak_20",
}

ACHIEVEMENT_EMOJI: dict[str, str] = {
    "streak_5": "\U0001f525",
    "streak_10": "⚡",
    "streak_15": "\U0001f31f",
    "streak_20": "\U0001f451",
}


def milestones_reached(streak: Streak) -> list[tuple[int, str]]:
    """Heads milestones hit exactly by this streak length."""
    if streak.direction is not Direction.HEADS:
        return []
    achievement_type = ACHIEVEMENT_MILESTONES.get(streak.length)
    if achievement_type is None:
        return []
    return [(streak.length, achievement_type)]


def achievement_label(achievement_type: str) -> str:
    value = achievement_type.removeprefix("streak_")
    if not value.isdigit():
        return achievement_type
    return f"{value} Heads Streak"


def achievement_emoji(achievement_type: str) -> str:
    return ACHIEVEMENT_EMOJI.get(achievement_type, "\U0001f3c6")


# --- Derived stats ---


def min_flip_interval_ms(max_flips_per_minute: int, floor_ms: int = 250) -> float:
    """Minimum gap between two flips of one session."""
    return max(float(floor_ms), 60_000 / max(max_flips_per_minute, 1))


def win_rate_rounded(heads: int, total: int) -> str:
    """Whole-percent heads rate, rounding halves up."""
    if total <= 0:
        return "0"
    return str(math.floor(heads / total * 100 + 0.5))


def win_rate_display(heads: int, total: int) -> str:
    """Heads rate with one decimal, e.g. '53.8'."""
    if total <= 0:
        return "0.0"
    return f"{heads / total * 100:.1f}"
