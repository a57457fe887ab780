"""
Token Monitor - Centralized Constants and Configuration

This module provides a centralized location for constants and environment-driven
defaults used throughout the token monitor: provider endpoints, timeouts,
courtesy delays and the scoring/suppression defaults of the signal pipeline.

Runtime-tunable settings (intervals, thresholds, credentials) live in
``shared.config.Settings``; this module holds the values that rarely change.
"""

import os
from enum import Enum
from typing import Any

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================


class Environment(str, Enum):
    """Application environments"""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# APPLICATION CONSTANTS
# =============================================================================

APP_NAME = "Token Monitor"
APP_VERSION = "0.2.0"
APP_DESCRIPTION = "Multi-platform token signal aggregation with rule-based and delegated advisory"

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Logging
LOG_FORMAT = os.getenv(
    "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


# =============================================================================
# PROVIDER CONFIGURATION
# =============================================================================

# DexScreener (free, no key)
DEXSCREENER_BASE_URL = os.getenv(
    "DEXSCREENER_BASE_URL", "https://api.dexscreener.com/latest"
)
DEXSCREENER_TIMEOUT = float(os.getenv("DEXSCREENER_TIMEOUT", "10"))  # seconds
DEXSCREENER_MIN_REQUEST_INTERVAL = float(
    os.getenv("DEXSCREENER_MIN_REQUEST_INTERVAL", "0.3")
)  # seconds
DEXSCREENER_RATE_LIMIT_PER_MINUTE = 30
# DexScreener publishes no hard quota
UNLIMITED_REQUESTS_SENTINEL = 1000

# Seed tokens whose pairs approximate a trending feed
DEXSCREENER_SEED_TOKENS = [
    token.strip()
    for token in os.getenv(
        "DEXSCREENER_SEED_TOKENS",
        "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v,"
        "So11111111111111111111111111111111111111112",
    ).split(",")
    if token.strip()
]

# Birdeye (public API, 100 requests/day)
BIRDEYE_BASE_URL = os.getenv("BIRDEYE_BASE_URL", "https://public-api.birdeye.so")
BIRDEYE_TIMEOUT = float(os.getenv("BIRDEYE_TIMEOUT", "15"))  # seconds
BIRDEYE_DAILY_LIMIT = int(os.getenv("BIRDEYE_DAILY_LIMIT", "100"))
BIRDEYE_RATE_LIMIT_PER_MINUTE = 10

# Chart link used in notifications
DEXSCREENER_CHART_URL = "https://dexscreener.com/{chain}/{address}"


# =============================================================================
# ADVISORY BACKENDS
# =============================================================================

DEEPSEEK_BASE_URL = os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1")
DEEPSEEK_MODEL = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")

MINIMAX_BASE_URL = os.getenv("MINIMAX_BASE_URL", "https://api.minimaxi.com/v1")
MINIMAX_MODEL = os.getenv("MINIMAX_MODEL", "abab6.5s-chat")

ADVISORY_TIMEOUT = float(os.getenv("ADVISORY_TIMEOUT", "60"))  # seconds
ADVISORY_TEMPERATURE = 0.3
ADVISORY_MAX_TOKENS = 2000

RULE_BASED_MODEL_ID = "RuleBased-v1.0"
FALLBACK_MODEL_ID = "fallback"

# Courtesy delays between batch items (seconds)
ANALYZER_BATCH_DELAY = float(os.getenv("ANALYZER_BATCH_DELAY", "0.1"))
ROUTER_BATCH_DELAY = float(os.getenv("ROUTER_BATCH_DELAY", "0.3"))


# =============================================================================
# NOTIFICATION CONFIGURATION
# =============================================================================

NOTIFIER_TIMEOUT = float(os.getenv("NOTIFIER_TIMEOUT", "10"))  # seconds
NOTIFY_SEND_DELAY = float(os.getenv("NOTIFY_SEND_DELAY", "0.5"))  # seconds


# =============================================================================
# SIGNAL PIPELINE DEFAULTS
# =============================================================================

DEFAULT_CHAIN = "solana"
NEW_TOKEN_MAX_AGE_HOURS = 24.0

# Aggregator
DEFAULT_MIN_CONFIDENCE_SCORE = 60
DEFAULT_DUPLICATE_WINDOW_MINUTES = 60
SUPPRESSION_RETENTION_HOURS = 24
MULTI_PLATFORM_BONUS_PER_PLATFORM = 10
MULTI_PLATFORM_BONUS_CAP = 20
EXTREME_RISK_MIN_SCORE = 80
DEAD_TOKEN_MAX_LIQUIDITY = 5000.0
DEAD_TOKEN_MAX_VOLUME = 1000.0

# Orchestrator
DEFAULT_SCAN_INTERVAL_MINUTES = 5
DEFAULT_MIN_AI_CONFIDENCE = 65
DEFAULT_MAX_SIGNALS_PER_BATCH = 10


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_summary() -> dict[str, Any]:
    """Get a summary of static configuration for debugging/logging"""
    return {
        "app": {
            "name": APP_NAME,
            "version": APP_VERSION,
            "environment": ENVIRONMENT,
        },
        "providers": {
            "dexscreener_base_url": DEXSCREENER_BASE_URL,
            "birdeye_base_url": BIRDEYE_BASE_URL,
            "birdeye_daily_limit": BIRDEYE_DAILY_LIMIT,
        },
        "advisory": {
            "deepseek_model": DEEPSEEK_MODEL,
            "minimax_model": MINIMAX_MODEL,
            "timeout": ADVISORY_TIMEOUT,
        },
        "pipeline": {
            "duplicate_window_minutes": DEFAULT_DUPLICATE_WINDOW_MINUTES,
            "extreme_risk_min_score": EXTREME_RISK_MIN_SCORE,
        },
    }
