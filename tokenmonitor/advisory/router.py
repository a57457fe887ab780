"""
Advisory Router - backend selection, fallback and batch safety

Owns the delegated advisory backends plus the rule-based engine. ``analyze``
retries once against the fallback backend and may raise; ``analyze_batch``
never raises and returns exactly one result per input signal, in order.
"""

import asyncio
import logging
import time
from typing import Any

from pydantic import BaseModel, Field, field_validator

from contracts.recommendation import (
    AIAnalysisResult,
    EntryStrategy,
    PositionSize,
    Recommendation,
    RiskAnalysis,
    TimeHorizon,
)
from contracts.signal import AggregatedSignal, RiskLevel
from shared.config import AI_PROVIDERS, Settings
from shared.constants import FALLBACK_MODEL_ID, ROUTER_BATCH_DELAY
from shared.timeutils import Clock, utc_now
from tokenmonitor.advisory.base import AdvisoryBackend, BackendNotConfiguredError
from tokenmonitor.advisory.deepseek import DeepSeekBackend
from tokenmonitor.advisory.minimax import MiniMaxBackend
from tokenmonitor.advisory.rule_engine import RuleBasedAnalyzer
from tokenmonitor.metrics import (
    advisory_fallbacks_total,
    advisory_latency_seconds,
    advisory_requests_total,
)

logger = logging.getLogger(__name__)

AUTO = "auto"
RULE_BASED = "rule-based"
# Delegated backends tried in this order in automatic mode
AUTO_PRIORITY = ("deepseek", "minimax")


class RouterConfig(BaseModel):
    """Advisory routing configuration"""

    primary_provider: str = Field(AUTO, description="auto, a backend name, or rule-based")
    fallback_provider: str = Field(RULE_BASED, description="Backend retried on failure")
    enable_fallback: bool = Field(True, description="Retry once against the fallback")
    batch_delay: float = Field(ROUTER_BATCH_DELAY, ge=0, description="Seconds between batch items")

    @field_validator("primary_provider", "fallback_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in AI_PROVIDERS:
            raise ValueError(f"Unknown advisory provider {v!r}, expected one of {AI_PROVIDERS}")
        return v


def fallback_result(signal: AggregatedSignal, clock: Clock = utc_now) -> AIAnalysisResult:
    """Neutral recommendation used when every backend failed"""
    price = signal.token.price_usd
    return AIAnalysisResult(
        signal_id=signal.id,
        recommendation=Recommendation.WATCH,
        confidence=50,
        reasoning=["Advisory analysis is temporarily unavailable, decide with caution"],
        entry_strategy=EntryStrategy(
            suggested_entry_price=price,
            suggested_stop_loss=price * 0.8,
            suggested_take_profit=price * 1.3,
            position_size=PositionSize.SMALL,
            max_position_usd=100,
            time_horizon=TimeHorizon.SHORT,
        ),
        risk_analysis=RiskAnalysis(
            rug_risk=50,
            volatility_risk=50,
            liquidity_risk=50,
            overall_risk=RiskLevel.HIGH,
            warnings=["Advisory analysis failed, do your own research"],
        ),
        key_observations=["Signal aggregated but advisory analysis failed"],
        analyzed_at=clock(),
        ai_model=FALLBACK_MODEL_ID,
    )


class AdvisoryRouter:
    """Routes analysis requests across advisory backends"""

    def __init__(
        self,
        backends: dict[str, AdvisoryBackend] | None = None,
        config: RouterConfig | None = None,
        rule_based: RuleBasedAnalyzer | None = None,
        clock: Clock = utc_now,
    ):
        self.config = config or RouterConfig()
        self.clock = clock
        self.rule_based = rule_based or RuleBasedAnalyzer(clock=clock)
        self.backends: dict[str, AdvisoryBackend] = {
            name: backend
            for name, backend in (backends or {}).items()
            if backend.is_configured
        }
        self.backends[RULE_BASED] = self.rule_based
        self.stats: dict[str, dict[str, int]] = {
            name: {"success": 0, "fail": 0} for name in (*AUTO_PRIORITY, RULE_BASED)
        }
        self.log_status()

    def select_provider(self) -> str:
        if self.config.primary_provider != AUTO:
            return self.config.primary_provider
        for name in AUTO_PRIORITY:
            if name in self.backends:
                return name
        return RULE_BASED

    async def _analyze_with(self, provider: str, signal: AggregatedSignal) -> AIAnalysisResult:
        stats = self.stats.setdefault(provider, {"success": 0, "fail": 0})
        start = time.perf_counter()
        try:
            backend = self.backends.get(provider)
            if backend is None:
                raise BackendNotConfiguredError(provider, "backend not configured")
            result = await backend.analyze(signal)
        except Exception:
            stats["fail"] += 1
            advisory_requests_total.labels(provider=provider, result="failure").inc()
            raise
        finally:
            advisory_latency_seconds.labels(provider=provider).observe(
                time.perf_counter() - start
            )
        stats["success"] += 1
        advisory_requests_total.labels(provider=provider, result="success").inc()
        return result

    async def analyze(self, signal: AggregatedSignal) -> AIAnalysisResult:
        """Analyze with the selected backend, retrying once on the fallback"""
        provider = self.select_provider()
        try:
            return await self._analyze_with(provider, signal)
        except Exception as e:
            fallback = self.config.fallback_provider
            if not self.config.enable_fallback or fallback == provider:
                raise
            logger.warning(
                f"{provider} analysis failed for {signal.symbol} ({e}), falling back to {fallback}"
            )
            return await self._analyze_with(fallback, signal)

    async def analyze_batch(self, signals: list[AggregatedSignal]) -> list[AIAnalysisResult]:
        """One result per signal in input order; never raises"""
        results = []
        for index, signal in enumerate(signals):
            try:
                results.append(await self.analyze(signal))
            except Exception as e:
                logger.error(
                    f"Analysis of {signal.symbol} ({signal.id}) failed after fallback: {e}",
                    exc_info=True,
                )
                advisory_fallbacks_total.inc()
                results.append(fallback_result(signal, self.clock))
            if index < len(signals) - 1:
                await asyncio.sleep(self.config.batch_delay)
        return results

    def get_status(self) -> dict[str, Any]:
        return {
            "providers": {
                "deepseek": "deepseek" in self.backends,
                "minimax": "minimax" in self.backends,
                RULE_BASED: True,
            },
            "selected": self.select_provider(),
            "config": self.config.model_dump(),
            "stats": self.get_stats(),
        }

    def get_stats(self) -> dict[str, dict[str, int]]:
        return {name: dict(counts) for name, counts in self.stats.items()}

    def log_status(self) -> None:
        configured = [name for name in AUTO_PRIORITY if name in self.backends]
        logger.info(
            f"Advisory router ready: primary={self.config.primary_provider} "
            f"(selected {self.select_provider()}), fallback={self.config.fallback_provider}, "
            f"configured backends={configured or 'none'}, rule-based always available"
        )

    async def close(self) -> None:
        for name, backend in self.backends.items():
            if name != RULE_BASED:
                await backend.close()


def build_router(settings: Settings, clock: Clock = utc_now) -> AdvisoryRouter:
    """Construct the router and its delegated backends from settings"""
    backends: dict[str, AdvisoryBackend] = {}
    if settings.deepseek_api_key:
        backends["deepseek"] = DeepSeekBackend(settings.deepseek_api_key)
    if settings.minimax_api_key:
        backends["minimax"] = MiniMaxBackend(settings.minimax_api_key)
    config = RouterConfig(
        primary_provider=settings.ai_provider,
        fallback_provider=settings.fallback_provider,
        enable_fallback=settings.enable_fallback,
    )
    return AdvisoryRouter(backends, config, clock=clock)
