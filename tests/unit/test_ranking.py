"""Leaderboard ordering, winner picking and status derivation."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cointoss.competition.ranking import (
    CompetitionStatus,
    derive_status,
    display_name,
    pick_winners,
    rank_sessions,
    shorten_wallet,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@dataclass
class S:
    id: int
    best_heads_streak: int
    total_heads: int = 0
    total_flips: int = 0


class TestRankSessions:
    def test_ties_get_distinct_ranks_by_session_id(self):
        sessions = [S(3, 7), S(1, 7), S(2, 9)]
        ranked = [(rank, s.id) for rank, s in rank_sessions(sessions)]
        assert ranked == [(1, 2), (2, 1), (3, 3)]


class TestPickWinners:
    def test_top_three_with_tie_to_earlier_session(self):
        """Best streaks [12, 9, 9, 5, 2] with threshold 5: 12, then the earlier 9, then the later 9."""
        sessions = [S(10, 12), S(11, 9), S(12, 9), S(13, 5), S(14, 2)]
        picked = [(pos, s.id) for pos, s in pick_winners(sessions, min_streak=5, top_count=3)]
        assert picked == [(1, 10), (2, 11), (3, 12)]

    def test_tie_order_independent_of_input_order(self):
        sessions = [S(12, 9), S(11, 9), S(10, 12)]
        picked = [s.id for _, s in pick_winners(sessions, min_streak=5, top_count=3)]
        assert picked == [10, 11, 12]

    def test_fewer_eligible_than_requested(self):
        sessions = [S(1, 6), S(2, 4), S(3, 1)]
        picked = pick_winners(sessions, min_streak=5, top_count=3)
        assert [s.id for _, s in picked] == [1]

    def test_none_eligible(self):
        assert pick_winners([S(1, 2)], min_streak=5, top_count=3) == []


class TestDeriveStatus:
    def test_active_before_end(self):
        assert derive_status(True, NOW + timedelta(hours=1), False, False, NOW) == CompetitionStatus.ACTIVE

    def test_active_flag_past_end_is_pending(self):
        assert derive_status(True, NOW - timedelta(seconds=1), False, False, NOW) == CompetitionStatus.PENDING_END

    def test_lifecycle_after_close(self):
        end = NOW - timedelta(hours=1)
        assert derive_status(False, end, False, False, NOW) == CompetitionStatus.ENDED
        assert derive_status(False, end, True, False, NOW) == CompetitionStatus.WINNERS_SELECTED
        assert derive_status(False, end, True, True, NOW) == CompetitionStatus.COMPLETED

    def test_naive_end_time_is_treated_as_utc(self):
        naive_end = (NOW + timedelta(minutes=5)).replace(tzinfo=None)
        assert derive_status(True, naive_end, False, False, NOW) == CompetitionStatus.ACTIVE


class TestDisplayName:
    def test_prefers_username(self):
        assert display_name("alice", "0x" + "a" * 40) == "alice"

    def test_shortens_wallet(self):
        wallet = "0x1234567890abcdef1234567890abcdef12345678"
        assert display_name(None, wallet) == "0x1234...5678"
        assert shorten_wallet(wallet) == "0x1234...5678"

    def test_anonymous_fallback(self):
        assert display_name(None, None) == "Anonymous"
