"""
Tests for shared/constants.py
"""

from shared.constants import (
    APP_NAME,
    APP_VERSION,
    DEXSCREENER_SEED_TOKENS,
    MULTI_PLATFORM_BONUS_CAP,
    MULTI_PLATFORM_BONUS_PER_PLATFORM,
    Environment,
    LogLevel,
    get_config_summary,
)


class TestEnums:
    def test_environment_values(self):
        assert Environment.PRODUCTION == "production"
        assert Environment.TESTING == "testing"

    def test_log_level_values(self):
        assert LogLevel.DEBUG == "DEBUG"
        assert "WARNING" in LogLevel.__members__


def test_seed_tokens_are_populated():
    assert DEXSCREENER_SEED_TOKENS
    assert all(token.strip() == token and token for token in DEXSCREENER_SEED_TOKENS)


def test_bonus_cap_allows_two_extra_platforms():
    assert MULTI_PLATFORM_BONUS_CAP == 2 * MULTI_PLATFORM_BONUS_PER_PLATFORM


def test_config_summary():
    summary = get_config_summary()
    assert summary["app"] == {
        "name": APP_NAME,
        "version": APP_VERSION,
        "environment": summary["app"]["environment"],
    }
    assert summary["providers"]["birdeye_daily_limit"] > 0
    assert "deepseek_model" in summary["advisory"]
