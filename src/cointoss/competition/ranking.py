"""Winner ordering, display names and competition status derivation.

The leaderboard queries use two orderings that must not be mixed:

- public leaderboard: best_heads_streak DESC, total_heads DESC
- admin / ended-competition views: best_heads_streak DESC, total_flips DESC

Winner auto-selection orders by best_heads_streak DESC and breaks ties by
the earliest session (lowest session id).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from cointoss.timeutils import ensure_utc


class SessionLike(Protocol):
    id: int
    total_flips: int
    total_heads: int
    best_heads_streak: int


class CompetitionStatus(str, Enum):
    ACTIVE = "active"
    PENDING_END = "pending_end"
    ENDED = "ended"
    WINNERS_SELECTED = "winners_selected"
    COMPLETED = "completed"


def derive_status(
    is_active: bool,
    end_time: datetime,
    winners_selected: bool,
    prize_delivered: bool,
    now: datetime,
) -> CompetitionStatus:
    """Lifecycle status shown to admins."""
    if is_active:
        if ensure_utc(end_time) > ensure_utc(now):
            return CompetitionStatus.ACTIVE
        return CompetitionStatus.PENDING_END
    if not winners_selected:
        return CompetitionStatus.ENDED
    if not prize_delivered:
        return CompetitionStatus.WINNERS_SELECTED
    return CompetitionStatus.COMPLETED


def winner_sort_key(s: SessionLike) -> tuple[int, int]:
    return (-s.best_heads_streak, s.id)


def is_eligible(s: SessionLike, min_streak: int) -> bool:
    return s.best_heads_streak >= min_streak


def rank_sessions(
    sessions: Iterable[SessionLike],
    key: Any = winner_sort_key,
) -> list[tuple[int, SessionLike]]:
    """Sort and assign 1-based ranks. Ties keep distinct ranks."""
    ordered = sorted(sessions, key=key)
    return [(idx + 1, s) for idx, s in enumerate(ordered)]


def pick_winners(
    sessions: Iterable[SessionLike],
    min_streak: int,
    top_count: int,
) -> list[tuple[int, SessionLike]]:
    """Top ``top_count`` eligible sessions with positions 1..N."""
    eligible = [s for s in sessions if is_eligible(s, min_streak)]
    return rank_sessions(eligible, key=winner_sort_key)[:top_count]


def shorten_wallet(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def display_name(username: str | None, wallet_address: str | None) -> str:
    """Username, else shortened wallet, else 'Anonymous'."""
    if username:
        return username
    if wallet_address:
        return shorten_wallet(wallet_address)
    return "Anonymous"
