"""Pure streak transition and derived-stat tests."""

from datetime import datetime, timezone

from cointoss.game.streak import (
    Direction,
    Outcome,
    SessionState,
    Streak,
    achievement_emoji,
    achievement_label,
    apply_flip,
    milestones_reached,
    min_flip_interval_ms,
    win_rate_display,
    win_rate_rounded,
)

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
H = Outcome.HEADS
T = Outcome.TAILS


def _play(outcomes: list[Outcome], state: SessionState | None = None) -> SessionState:
    state = state or SessionState()
    for outcome in outcomes:
        state = apply_flip(state, outcome, T0)
    return state


class TestSignedStreak:
    def test_zero_is_no_streak(self):
        assert Streak.from_signed(0) == Streak(Direction.NONE, 0)
        assert Streak.from_signed(None) == Streak()

    def test_positive_is_heads(self):
        assert Streak.from_signed(4) == Streak(Direction.HEADS, 4)

    def test_negative_is_tails(self):
        assert Streak.from_signed(-3) == Streak(Direction.TAILS, 3)

    def test_round_trip(self):
        for value in (-7, -1, 0, 1, 12):
            assert Streak.from_signed(value).to_signed() == value


class TestApplyFlip:
    def test_first_heads_starts_run(self):
        """First flip ever starts a heads run of 1."""
        state = _play([H])
        assert state.current_streak == 1
        assert state.best_heads_streak == 1
        assert state.total_flips == 1
        assert state.total_heads == 1
        assert state.last_flip_at == T0

    def test_first_tails_counts_as_fail(self):
        state = _play([T])
        assert state.current_streak == -1
        assert state.best_tails_streak == 1
        assert state.daily_fails_used == 1

    def test_heads_extends_heads_run(self):
        state = _play([H, H, H])
        assert state.current_streak == 3
        assert state.best_heads_streak == 3

    def test_tails_breaks_heads_run(self):
        """H H H T leaves the best at 3 and starts a tails run."""
        state = _play([H, H, H, T])
        assert state.current_streak == -1
        assert state.best_heads_streak == 3
        assert state.best_tails_streak == 1

    def test_heads_after_tails_restarts_at_one(self):
        state = _play([T, T, H])
        assert state.current_streak == 1
        assert state.best_tails_streak == 2

    def test_best_never_decreases(self):
        state = _play([H] * 6 + [T] + [H] * 2)
        assert state.best_heads_streak == 6
        assert state.current_streak == 2

    def test_counters_stay_consistent(self):
        state = _play([H, T, T, H, H, T, H])
        assert state.total_flips == state.total_heads + state.total_tails == 7
        assert state.daily_fails_used == 3

    def test_input_state_not_mutated(self):
        start = SessionState()
        apply_flip(start, H, T0)
        assert start.total_flips == 0


class TestMilestones:
    def test_exact_milestones_only(self):
        assert milestones_reached(Streak(Direction.HEADS, 5)) == [(5, "streak_5")]
        assert milestones_reached(Streak(Direction.HEADS, 20)) == [(20, "streak_20")]
        assert milestones_reached(Streak(Direction.HEADS, 6)) == []
        assert milestones_reached(Streak(Direction.HEADS, 25)) == []

    def test_tails_runs_never_unlock(self):
        assert milestones_reached(Streak(Direction.TAILS, 5)) == []

    def test_label_and_emoji(self):
        assert achievement_label("streak_10") == "10 Heads Streak"
        assert achievement_emoji("streak_5") == "\U0001f525"
        assert achievement_emoji("streak_20") == "\U0001f451"
        assert achievement_emoji("unknown") == "\U0001f3c6"


class TestDerivedStats:
    def test_min_interval_uses_floor(self):
        assert min_flip_interval_ms(240) == 250
        assert min_flip_interval_ms(6000) == 250

    def test_min_interval_from_rate(self):
        assert min_flip_interval_ms(60) == 1000
        assert min_flip_interval_ms(30) == 2000

    def test_win_rate_rounded_half_up(self):
        assert win_rate_rounded(1, 2) == "50"
        assert win_rate_rounded(1, 3) == "33"
        assert win_rate_rounded(2, 3) == "67"
        assert win_rate_rounded(1, 8) == "13"  # 12.5 rounds up

    def test_win_rate_zero_flips(self):
        assert win_rate_rounded(0, 0) == "0"
        assert win_rate_display(0, 0) == "0.0"

    def test_win_rate_display_one_decimal(self):
        assert win_rate_display(7, 13) == "53.8"
        assert win_rate_display(5, 5) == "100.0"
