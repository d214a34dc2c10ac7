"""UTC helpers and countdown formatting."""

from datetime import datetime, timedelta, timezone

from cointoss.timeutils import ensure_utc, format_time_remaining, millis_between, time_remaining_ms

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFormatTimeRemaining:
    def test_hours_minutes_seconds(self):
        ms = ((5 * 60 + 3) * 60 + 12) * 1000
        assert format_time_remaining(ms) == "5h 3m 12s"

    def test_sub_second_rounds_down(self):
        assert format_time_remaining(999) == "0h 0m 0s"

    def test_ended(self):
        assert format_time_remaining(0) == "Competition ended"
        assert format_time_remaining(-10) == "Competition ended"

    def test_more_than_a_day_stays_in_hours(self):
        assert format_time_remaining(30 * 3600 * 1000) == "30h 0m 0s"


class TestTimeRemaining:
    def test_future_end(self):
        assert time_remaining_ms(NOW + timedelta(seconds=90), NOW) == 90_000

    def test_past_end_floors_at_zero(self):
        assert time_remaining_ms(NOW - timedelta(hours=1), NOW) == 0

    def test_millis_between_handles_naive(self):
        naive = (NOW + timedelta(milliseconds=1500)).replace(tzinfo=None)
        assert millis_between(NOW, naive) == 1500


class TestEnsureUtc:
    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_gets_utc(self):
        assert ensure_utc(datetime(2026, 1, 1)).tzinfo == timezone.utc

    def test_other_offset_converted(self):
        plus_two = timezone(timedelta(hours=2))
        converted = ensure_utc(datetime(2026, 1, 1, 14, 0, tzinfo=plus_two))
        assert converted == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert converted.tzinfo == timezone.utc
