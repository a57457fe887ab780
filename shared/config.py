"""
Configuration settings for the Token Monitor
"""

from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared import constants
from shared.constants import Environment, LogLevel

AI_PROVIDERS = ("auto", "deepseek", "minimax", "rule-based")


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Scan Configuration
    scan_interval_minutes: int = constants.DEFAULT_SCAN_INTERVAL_MINUTES
    min_confidence_score: int = constants.DEFAULT_MIN_CONFIDENCE_SCORE
    min_ai_confidence: int = constants.DEFAULT_MIN_AI_CONFIDENCE
    max_signals_per_batch: int = constants.DEFAULT_MAX_SIGNALS_PER_BATCH
    duplicate_window_minutes: int = constants.DEFAULT_DUPLICATE_WINDOW_MINUTES
    chains: str = constants.DEFAULT_CHAIN

    # Provider Configuration
    dexscreener_enabled: bool = True
    birdeye_enabled: bool = False  # free quota is 100 requests/day
    birdeye_api_key: str | None = None

    # Advisory Configuration
    ai_provider: str = "auto"
    fallback_provider: str = "rule-based"
    enable_fallback: bool = True
    deepseek_api_key: str | None = None
    minimax_api_key: str | None = None

    # Notification Configuration
    discord_webhook_url: str | None = None
    tracking_file: str = "data/recommendations.json"

    # Monitoring Configuration
    prometheus_enabled: bool = True
    autostart_monitor: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Validate log level names"""
        value = str(v).strip().upper()
        if value not in LogLevel.__members__:
            raise ValueError(f"Log level must be one of {list(LogLevel.__members__)}")
        return value

    @field_validator("scan_interval_minutes", "max_signals_per_batch")
    @classmethod
    def validate_positive(cls, v: Any) -> int:
        """Intervals and batch sizes must be at least 1"""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return int(v)

    @field_validator("min_confidence_score", "min_ai_confidence")
    @classmethod
    def validate_score(cls, v: Any) -> int:
        """Validate score thresholds"""
        if v < 0 or v > 100:
            raise ValueError("Score threshold must be between 0 and 100")
        return int(v)

    @field_validator("ai_provider", "fallback_provider")
    @classmethod
    def validate_provider(cls, v: Any) -> str:
        """Validate advisory provider names"""
        value = str(v).strip().lower()
        if value not in AI_PROVIDERS:
            raise ValueError(f"Advisory provider must be one of {AI_PROVIDERS}")
        return value

    @property
    def chain_list(self) -> list[str]:
        """Configured chains, in order, without blanks or duplicates"""
        seen: list[str] = []
        for chain in self.chains.split(","):
            chain = chain.strip().lower()
            if chain and chain not in seen:
                seen.append(chain)
        return seen or [constants.DEFAULT_CHAIN]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == Environment.PRODUCTION.value

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment"""
        return self.environment.lower() in (Environment.TESTING.value, "test")

    def validate_required_settings(self) -> None:
        """Validate that a pinned advisory backend has credentials"""
        if self.ai_provider == "deepseek" and not self.deepseek_api_key:
            raise ValueError("DEEPSEEK_API_KEY is required when AI_PROVIDER=deepseek")
        if self.ai_provider == "minimax" and not self.minimax_api_key:
            raise ValueError("MINIMAX_API_KEY is required when AI_PROVIDER=minimax")
