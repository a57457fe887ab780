"""
Rule-based advisory engine.

Deterministic reference implementation of the advisory contract and the
always-available fallback of the router. Its risk model is recomputed from
the token snapshot and is independent of the adapter-level risk rating.
"""

import asyncio
import logging
from dataclasses import dataclass

from contracts.recommendation import (
    AIAnalysisResult,
    EntryStrategy,
    PositionSize,
    Recommendation,
    RiskAnalysis,
    TimeHorizon,
)
from contracts.signal import AggregatedSignal, RiskLevel
from shared.constants import ANALYZER_BATCH_DELAY, RULE_BASED_MODEL_ID
from shared.timeutils import Clock, utc_now
from tokenmonitor.advisory.base import AdvisoryBackend

logger = logging.getLogger(__name__)

ENTRY_SLIPPAGE = 1.02
REWARD_TO_RISK = 2.0
MIN_STOP_LOSS_PCT = 10.0
MAX_STOP_LOSS_PCT = 30.0
NEW_TOKEN_MAX_POSITION_USD = 300.0


@dataclass(frozen=True)
class MarketMetrics:
    volume_health: int
    price_momentum: float
    liquidity_adequate: bool
    holders_adequate: bool
    multi_platform_confirmed: bool


def volume_health(volume_24h: float, liquidity_usd: float) -> int:
    """0-100 bucket of the volume to liquidity ratio"""
    if liquidity_usd == 0:
        return 0
    ratio = volume_24h / liquidity_usd
    if ratio > 2:
        return 100
    if ratio > 1:
        return 80
    if ratio > 0.5:
        return 60
    if ratio > 0.1:
        return 40
    return 20


def format_usd(amount: float) -> str:
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${amount:.0f}"


def overall_risk_level(score: float) -> RiskLevel:
    if score >= 60:
        return RiskLevel.EXTREME
    if score >= 40:
        return RiskLevel.HIGH
    if score >= 25:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def analyze_market(signal: AggregatedSignal) -> MarketMetrics:
    token = signal.token
    return MarketMetrics(
        volume_health=volume_health(token.volume_24h, token.liquidity_usd),
        price_momentum=token.price_change_24h,
        liquidity_adequate=token.liquidity_usd > token.market_cap * 0.1,
        holders_adequate=token.holder_count > 500,
        multi_platform_confirmed=signal.metrics.platform_count >= 2,
    )


def analyze_risk(signal: AggregatedSignal) -> RiskAnalysis:
    token = signal.token

    rug = 0
    if signal.age_hours < 1:
        rug += 40
    elif signal.age_hours < 6:
        rug += 25
    elif signal.age_hours < 24:
        rug += 15

    if token.liquidity_usd < 10_000:
        rug += 30
    elif token.liquidity_usd < 50_000:
        rug += 15

    if token.market_cap < 100_000:
        rug += 20

    if token.holder_count < 100:
        rug += 20
    elif token.holder_count < 500:
        rug += 10

    volatility = 30
    if abs(token.price_change_24h) > 100:
        volatility += 30
    elif abs(token.price_change_24h) > 50:
        volatility += 15

    liquidity = 20
    if token.liquidity_usd < token.volume_24h * 0.5:
        liquidity += 30

    rug = min(rug, 100)
    return RiskAnalysis(
        rug_risk=rug,
        volatility_risk=min(volatility, 100),
        liquidity_risk=min(liquidity, 100),
        overall_risk=overall_risk_level((rug + volatility + liquidity) / 3),
        warnings=list(signal.risk_factors),
    )


def entry_strategy(signal: AggregatedSignal, risk: RiskAnalysis) -> EntryStrategy:
    price = signal.token.price_usd

    if risk.overall_risk == RiskLevel.LOW and signal.score >= 80:
        size, max_usd = PositionSize.LARGE, 1000.0
    elif risk.overall_risk == RiskLevel.MEDIUM and signal.score >= 70:
        size, max_usd = PositionSize.MEDIUM, 500.0
    else:
        size, max_usd = PositionSize.SMALL, 200.0

    if signal.is_new_token:
        size, max_usd = PositionSize.SMALL, min(max_usd, NEW_TOKEN_MAX_POSITION_USD)

    stop_loss_pct = min(
        max(abs(signal.token.price_change_24h) * 0.5, MIN_STOP_LOSS_PCT), MAX_STOP_LOSS_PCT
    )
    take_profit_pct = stop_loss_pct * REWARD_TO_RISK

    if signal.is_new_token:
        horizon = TimeHorizon.SCALP
    elif signal.score >= 85:
        horizon = TimeHorizon.MEDIUM
    else:
        horizon = TimeHorizon.SHORT

    return EntryStrategy(
        suggested_entry_price=price * ENTRY_SLIPPAGE,
        suggested_stop_loss=price * (1 - stop_loss_pct / 100),
        suggested_take_profit=price * (1 + take_profit_pct / 100),
        position_size=size,
        max_position_usd=max_usd,
        time_horizon=horizon,
    )


def decide(score: float, overall_risk: RiskLevel) -> Recommendation:
    """First matching rule wins"""
    if overall_risk == RiskLevel.EXTREME:
        return Recommendation.AVOID
    if score >= 85 and overall_risk == RiskLevel.LOW:
        return Recommendation.STRONG_BUY
    if score >= 75 and overall_risk != RiskLevel.HIGH:
        return Recommendation.BUY
    if score >= 60:
        return Recommendation.WATCH
    return Recommendation.AVOID


def confidence_for(score: float, market: MarketMetrics, risk: RiskAnalysis) -> float:
    confidence = score
    if market.multi_platform_confirmed:
        confidence += 5
    if risk.overall_risk == RiskLevel.LOW:
        confidence += 5
    elif risk.overall_risk == RiskLevel.HIGH:
        confidence -= 15
    elif risk.overall_risk == RiskLevel.EXTREME:
        confidence -= 30
    return max(0.0, min(100.0, confidence))


def build_reasoning(signal: AggregatedSignal, risk: RiskAnalysis) -> list[str]:
    token = signal.token
    reasons = []

    if signal.metrics.platform_count >= 2:
        reasons.append(
            f"✅ Confirmed on {signal.metrics.platform_count} platforms"
        )
    if token.volume_24h > 100_000:
        reasons.append(f"✅ High volume: {format_usd(token.volume_24h)} in 24h")
    if token.price_change_24h > 50:
        reasons.append(f"🚀 Strong momentum: +{token.price_change_24h:.1f}% in 24h")
    if signal.is_new_token:
        reasons.append(f"🆕 New listing: only {signal.age_hours:.1f} hours old")
    if token.liquidity_usd > 100_000:
        reasons.append(f"💧 Deep liquidity: {format_usd(token.liquidity_usd)}")
    if token.holder_count > 1000:
        reasons.append(f"👥 Wide distribution: {token.holder_count} holders")

    if risk.rug_risk > 50:
        reasons.append(f"⚠️ Elevated rug risk ({risk.rug_risk:.0f}%), keep size small")
    if token.liquidity_usd < 50_000:
        reasons.append("⚠️ Thin liquidity, expect slippage")
    if token.price_change_24h > 200:
        reasons.append(
            f"⚠️ Extended move ({token.price_change_24h:.0f}%), pullback likely"
        )
    return reasons


def build_observations(signal: AggregatedSignal) -> list[str]:
    token = signal.token
    observations = []

    if token.market_cap < 1_000_000:
        observations.append("Micro-cap token: explosive upside with extreme risk")
    elif token.market_cap < 10_000_000:
        observations.append("Small-cap token with room to grow")

    if token.market_cap > 0:
        turnover = token.volume_24h / token.market_cap
        if turnover > 1:
            observations.append("Volume exceeds market cap, very heated trading")
        elif turnover > 0.5:
            observations.append("Active trading with strong market attention")

    if signal.is_new_token:
        observations.append("Unproven new token, prefer quick in and out")
        if token.holder_count < 200:
            observations.append("Early supply is concentrated, watch large holders")

    platforms = ", ".join(p.value for p in signal.metrics.confirming_platforms)
    observations.append(f"Data sources: {platforms}")
    return observations


class RuleBasedAnalyzer(AdvisoryBackend):
    """Deterministic advisory backend"""

    name = "rule-based"

    def __init__(self, batch_delay: float = ANALYZER_BATCH_DELAY, clock: Clock = utc_now):
        self.batch_delay = batch_delay
        self.clock = clock

    async def analyze(self, signal: AggregatedSignal) -> AIAnalysisResult:
        market = analyze_market(signal)
        risk = analyze_risk(signal)
        recommendation = decide(signal.score, risk.overall_risk)
        confidence = confidence_for(signal.score, market, risk)

        result = AIAnalysisResult(
            signal_id=signal.id,
            recommendation=recommendation,
            confidence=confidence,
            reasoning=build_reasoning(signal, risk),
            entry_strategy=entry_strategy(signal, risk),
            risk_analysis=risk,
            key_observations=build_observations(signal),
            analyzed_at=self.clock(),
            ai_model=RULE_BASED_MODEL_ID,
        )
        logger.info(
            f"Rule-based analysis {signal.symbol}: {recommendation.value} ({confidence:.0f}%)"
        )
        return result

    async def analyze_batch(self, signals: list[AggregatedSignal]) -> list[AIAnalysisResult]:
        """Sequential analysis; failed signals are logged and left out"""
        results = []
        for signal in signals:
            try:
                results.append(await self.analyze(signal))
            except Exception as e:
                logger.error(f"Rule-based analysis failed for {signal.id}: {e}", exc_info=True)
                continue
            await asyncio.sleep(self.batch_delay)
        return results
