"""Game settings range validation and wallet normalization."""

import pytest

from cointoss.auth.service import normalize_wallet
from cointoss.errors import ValidationError
from cointoss.game.settings_service import validate_settings_update


class TestValidateSettingsUpdate:
    def test_empty_update_is_valid(self):
        validate_settings_update({})

    def test_none_fields_are_ignored(self):
        validate_settings_update({"min_streak_for_leaderboard": None, "daily_fail_limit": 0})

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("min_streak_for_leaderboard", 0, "Minimum streak must be at least 1"),
            ("competition_duration_hours", 0, "Competition duration must be at least 1 hour"),
            ("max_flips_per_minute", 0, "Max flips per minute must be at least 1"),
            ("daily_fail_limit", -1, "Daily fail limit cannot be negative"),
        ],
    )
    def test_out_of_range(self, field, value, message):
        with pytest.raises(ValidationError, match=message):
            validate_settings_update({field: value})

    def test_bool_is_not_an_int(self):
        with pytest.raises(ValidationError):
            validate_settings_update({"max_flips_per_minute": True})


class TestNormalizeWallet:
    def test_lowercases(self):
        assert normalize_wallet("0xABCDEF0123456789abcdef0123456789ABCDEF01") == (
            "0xabcdef0123456789abcdef0123456789abcdef01"
        )

    @pytest.mark.parametrize("wallet", ["", "0x123", "abcdef0123456789abcdef0123456789abcdef0123", "0x" + "g" * 40])
    def test_rejects_malformed(self, wallet):
        with pytest.raises(ValidationError, match="Invalid wallet address format"):
            normalize_wallet(wallet)
