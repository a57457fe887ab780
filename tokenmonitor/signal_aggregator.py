"""
Signal Aggregator - Multi-platform signal merging and filtering

Queries every enabled provider adapter, merges signals that refer to the same
``(chain, token_address)`` into one multi-platform signal and filters out
low-quality, duplicate, extreme-risk and dead-token signals.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Iterable

from pydantic import BaseModel, Field

from contracts.signal import (
    AggregatedSignal,
    Platform,
    RiskLevel,
    SignalMetrics,
    Urgency,
)
from shared.constants import (
    BIRDEYE_RATE_LIMIT_PER_MINUTE,
    DEAD_TOKEN_MAX_LIQUIDITY,
    DEAD_TOKEN_MAX_VOLUME,
    DEFAULT_CHAIN,
    DEFAULT_DUPLICATE_WINDOW_MINUTES,
    DEFAULT_MIN_CONFIDENCE_SCORE,
    DEXSCREENER_RATE_LIMIT_PER_MINUTE,
    EXTREME_RISK_MIN_SCORE,
    MULTI_PLATFORM_BONUS_CAP,
    MULTI_PLATFORM_BONUS_PER_PLATFORM,
    UNLIMITED_REQUESTS_SENTINEL,
)
from shared.timeutils import Clock, utc_now
from tokenmonitor.metrics import (
    provider_errors_total,
    signals_emitted_total,
    signals_fetched_total,
    signals_filtered_total,
    signals_merged_total,
)
from tokenmonitor.providers.base import ProviderAdapter
from tokenmonitor.scoring import clamp_score
from tokenmonitor.suppression import SuppressionCache

logger = logging.getLogger(__name__)

NEW_LISTINGS = "new_listings"
TRENDING = "trending"


class PlatformConfig(BaseModel):
    """Per-platform aggregation settings"""

    enabled: bool = Field(True, description="Whether the platform is queried")
    rate_limit_per_minute: int = Field(
        30, ge=0, description="Provider request rate, reported in platform status"
    )
    priority: int = Field(
        1, ge=1, description="Query order; lower first, so it supplies the merge base"
    )


def default_platforms() -> dict[Platform, PlatformConfig]:
    return {
        Platform.DEXSCREENER: PlatformConfig(
            enabled=True, rate_limit_per_minute=DEXSCREENER_RATE_LIMIT_PER_MINUTE, priority=1
        ),
        Platform.BIRDEYE: PlatformConfig(
            enabled=False, rate_limit_per_minute=BIRDEYE_RATE_LIMIT_PER_MINUTE, priority=2
        ),
        Platform.HELIUS: PlatformConfig(enabled=False, rate_limit_per_minute=60, priority=1),
        Platform.SOLSCAN: PlatformConfig(enabled=False, rate_limit_per_minute=20, priority=3),
        Platform.DEFINED: PlatformConfig(enabled=False, rate_limit_per_minute=30, priority=2),
    }


class AggregationConfig(BaseModel):
    """Aggregator thresholds and platform switches"""

    min_confidence_score: int = Field(
        DEFAULT_MIN_CONFIDENCE_SCORE, ge=0, le=100, description="Minimum signal score"
    )
    duplicate_window_minutes: int = Field(
        DEFAULT_DUPLICATE_WINDOW_MINUTES, ge=0, description="Suppression window"
    )
    platforms: dict[Platform, PlatformConfig] = Field(default_factory=default_platforms)

    def is_enabled(self, platform: Platform) -> bool:
        config = self.platforms.get(platform)
        return bool(config and config.enabled)


def _unique(items: Iterable[Any]) -> list[Any]:
    return list(dict.fromkeys(items))


def merge_group(group: list[AggregatedSignal]) -> AggregatedSignal:
    """Combine signals for one token key into a single multi-platform signal"""
    if len(group) == 1:
        return group[0]

    base = group[0]
    platforms = {p for signal in group for p in signal.metrics.confirming_platforms}
    confirming = sorted(platforms, key=lambda p: list(Platform).index(p))

    bonus = min((len(confirming) - 1) * MULTI_PLATFORM_BONUS_PER_PLATFORM, MULTI_PLATFORM_BONUS_CAP)
    average = sum(signal.score for signal in group) / len(group)

    key = f"{base.chain}{base.token_address}"
    return base.model_copy(
        update={
            "id": f"merged_{uuid.uuid4().hex[:12]}_{key[-12:]}",
            "score": clamp_score(average + bonus),
            "urgency": Urgency.highest(signal.urgency for signal in group),
            "sources": [source for signal in group for source in signal.sources],
            "metrics": SignalMetrics(
                platform_count=len(confirming),
                confirming_platforms=confirming,
                volume_score=max(signal.metrics.volume_score for signal in group),
                price_score=max(signal.metrics.price_score for signal in group),
                social_score=max(signal.metrics.social_score for signal in group),
                whale_score=max(signal.metrics.whale_score for signal in group),
            ),
            "risk_level": RiskLevel.highest(signal.risk_level for signal in group),
            "risk_factors": _unique(f for signal in group for f in signal.risk_factors),
        }
    )


def merge_signals(signals: Iterable[AggregatedSignal]) -> list[AggregatedSignal]:
    """Group by token key and merge each group, preserving first-seen order"""
    groups: dict[tuple[str, str], list[AggregatedSignal]] = defaultdict(list)
    for signal in signals:
        groups[signal.token_key].append(signal)

    merged = []
    for group in groups.values():
        if len(group) > 1:
            signals_merged_total.inc()
        merged.append(merge_group(group))
    return merged


class SignalAggregator:
    """Aggregates signals from every enabled provider adapter"""

    def __init__(
        self,
        providers: dict[Platform, ProviderAdapter],
        config: AggregationConfig | None = None,
        clock: Clock = utc_now,
        suppression: SuppressionCache | None = None,
    ):
        self.providers = providers
        self.config = config or AggregationConfig()
        self.clock = clock
        self.suppression = suppression or SuppressionCache()

    def enabled_providers(self) -> list[ProviderAdapter]:
        """Enabled adapters in priority order, ties broken by platform order"""
        enabled = [
            platform for platform in self.providers if self.config.is_enabled(platform)
        ]
        enabled.sort(
            key=lambda p: (self.config.platforms[p].priority, list(Platform).index(p))
        )
        return [self.providers[platform] for platform in enabled]

    async def _fetch(
        self, adapter: ProviderAdapter, kind: str, chain: str
    ) -> list[AggregatedSignal]:
        platform = adapter.platform.value
        try:
            if kind == NEW_LISTINGS:
                signals = await adapter.get_new_listings(chain)
            else:
                signals = await adapter.get_trending(chain)
        except Exception as e:
            logger.error(f"{platform} {kind} fetch failed: {e}", exc_info=True)
            provider_errors_total.labels(platform=platform, kind=kind).inc()
            return []

        logger.info(f"{platform} returned {len(signals)} {kind} signals for {chain}")
        signals_fetched_total.labels(platform=platform, kind=kind).inc(len(signals))
        return signals

    async def _aggregate(
        self, kind: str, chain: str, record: bool = True
    ) -> list[AggregatedSignal]:
        results = await asyncio.gather(
            *(self._fetch(adapter, kind, chain) for adapter in self.enabled_providers())
        )
        raw = [signal for signals in results for signal in signals]

        filtered = self.filter_signals(merge_signals(raw), record=record)
        filtered.sort(key=lambda s: s.score, reverse=True)

        signals_emitted_total.labels(kind=kind).inc(len(filtered))
        logger.info(
            f"Aggregated {kind} on {chain}: {len(raw)} raw -> {len(filtered)} signals"
        )
        return filtered

    async def aggregate_new_listings(
        self, chain: str = DEFAULT_CHAIN, record: bool = True
    ) -> list[AggregatedSignal]:
        return await self._aggregate(NEW_LISTINGS, chain, record)

    async def aggregate_trending_signals(
        self, chain: str = DEFAULT_CHAIN, record: bool = True
    ) -> list[AggregatedSignal]:
        return await self._aggregate(TRENDING, chain, record)

    def _drop_reason(
        self, signal: AggregatedSignal, now: datetime, window: timedelta
    ) -> str | None:
        if signal.score < self.config.min_confidence_score:
            return "low_score"
        if self.suppression.is_suppressed(signal.token_key, now, window):
            return "suppressed"
        if signal.risk_level == RiskLevel.EXTREME and signal.score < EXTREME_RISK_MIN_SCORE:
            return "extreme_risk"
        if (
            signal.token.liquidity_usd < DEAD_TOKEN_MAX_LIQUIDITY
            and signal.token.volume_24h < DEAD_TOKEN_MAX_VOLUME
        ):
            return "dead_token"
        return None

    def filter_signals(
        self,
        signals: Iterable[AggregatedSignal],
        now: datetime | None = None,
        record: bool = True,
    ) -> list[AggregatedSignal]:
        """Drop low-score, suppressed, extreme-risk and dead signals in that order.

        Passing signals are recorded for duplicate suppression unless ``record``
        is False.
        """
        now = now or self.clock()
        window = timedelta(minutes=self.config.duplicate_window_minutes)

        passed = []
        for signal in signals:
            reason = self._drop_reason(signal, now, window)
            if reason is not None:
                logger.debug(f"Filtered {signal.symbol} ({signal.token_address}): {reason}")
                signals_filtered_total.labels(reason=reason).inc()
                continue
            passed.append(signal)
            if record:
                self.suppression.record(signal.token_key, now)

        pruned = self.suppression.prune(now)
        if pruned:
            logger.debug(f"Pruned {pruned} expired suppression entries")
        return passed

    def get_platform_status(self) -> list[dict[str, Any]]:
        status = []
        for platform in (Platform.DEXSCREENER, Platform.BIRDEYE):
            adapter = self.providers.get(platform)
            config = self.config.platforms.get(platform) or PlatformConfig(enabled=False)
            status.append(
                {
                    "platform": platform.value,
                    "enabled": self.config.is_enabled(platform),
                    "configured": adapter is not None,
                    "priority": config.priority,
                    "rate_limit_per_minute": config.rate_limit_per_minute,
                    "remaining_requests": (
                        adapter.get_remaining_requests()
                        if adapter
                        else UNLIMITED_REQUESTS_SENTINEL
                    ),
                }
            )
        return status

    def update_config(self, **changes: Any) -> AggregationConfig:
        """Apply partial config changes; platform entries merge per platform"""
        data = self.config.model_dump()
        platforms = changes.pop("platforms", None) or {}
        for name, platform_changes in platforms.items():
            platform = Platform(name)
            if isinstance(platform_changes, PlatformConfig):
                platform_changes = platform_changes.model_dump()
            data["platforms"][platform] = {
                **data["platforms"].get(platform, {}),
                **platform_changes,
            }
        data.update(changes)

        self.config = AggregationConfig.model_validate(data)
        logger.info(
            f"Aggregation config updated (fields: {sorted(changes)}, "
            f"platforms: {sorted(Platform(p).value for p in platforms)})"
        )
        return self.config
