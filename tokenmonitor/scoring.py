"""
Signal scoring contract shared by every provider adapter.

Each adapter turns a raw observation into an ``AggregatedSignal`` through
``build_signal`` so that scores stay comparable across platforms when the
aggregator merges them. Adapters differ only in the weights carried by their
``ScoringProfile`` and ``RiskProfile``; the additive, capped shape is common.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, NamedTuple

from contracts.signal import (
    AggregatedSignal,
    Platform,
    RiskLevel,
    SignalMetrics,
    SignalSource,
    SignalType,
    TokenSnapshot,
    Urgency,
)
from shared.constants import NEW_TOKEN_MAX_AGE_HOURS
from shared.timeutils import hours_between

logger = logging.getLogger(__name__)

BASE_SCORE = 50


@dataclass(frozen=True)
class ScoringProfile:
    """Additive score weights for one adapter"""

    volume_tier1: int = 20  # volume24h > 100k
    volume_tier2: int = 15  # volume24h > 500k
    liquidity: int = 10  # liquidity > 50k
    new_token: int = 10  # age <= 24h
    momentum_tier1: int = 15  # priceChange24h > 50%
    momentum_tier2: int = 0  # priceChange24h > 100%
    holders: int = 0  # holderCount > 1000


@dataclass(frozen=True)
class RiskProfile:
    """Risk band weights and level thresholds for one adapter"""

    age_under_1h: int = 30
    age_under_6h: int = 20
    age_under_24h: int = 10
    liquidity_under_10k: int = 25
    liquidity_under_50k: int = 15
    market_cap_under_100k: int = 20
    holders_under_100: int = 15
    extreme_threshold: int = 70
    high_threshold: int = 45
    medium_threshold: int = 25


class RiskFlag(NamedTuple):
    """Source-specific risk contribution (e.g. unverified contract)"""

    weight: int
    factor: str


class RiskAssessment(NamedTuple):
    score: int
    level: RiskLevel
    factors: list[str]


def clamp_score(value: float) -> int:
    """Round and clamp a score into [0, 100]"""
    return int(max(0, min(100, round(value))))


def compute_score(
    token: TokenSnapshot, is_new: bool, profile: ScoringProfile
) -> int:
    """Base 50 plus volume, liquidity, age, momentum and holder bonuses"""
    score = BASE_SCORE
    if token.volume_24h > 100_000:
        score += profile.volume_tier1
    if token.volume_24h > 500_000:
        score += profile.volume_tier2
    if token.liquidity_usd > 50_000:
        score += profile.liquidity
    if is_new:
        score += profile.new_token
    if token.price_change_24h > 50:
        score += profile.momentum_tier1
    if token.price_change_24h > 100:
        score += profile.momentum_tier2
    if token.holder_count > 1000:
        score += profile.holders
    return clamp_score(score)


def determine_urgency(score: int, is_new: bool, volume_24h: float) -> Urgency:
    if score >= 90 or (is_new and volume_24h > 100_000):
        return Urgency.CRITICAL
    if score >= 75:
        return Urgency.HIGH
    if score >= 60:
        return Urgency.MEDIUM
    return Urgency.LOW


def risk_level_for(score: int, profile: RiskProfile) -> RiskLevel:
    if score >= profile.extreme_threshold:
        return RiskLevel.EXTREME
    if score >= profile.high_threshold:
        return RiskLevel.HIGH
    if score >= profile.medium_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def assess_risk(
    token: TokenSnapshot,
    age_hours: float,
    profile: RiskProfile,
    extra_flags: Iterable[RiskFlag] = (),
) -> RiskAssessment:
    """Accumulate a 0-100 adapter-level risk score with one factor per band"""
    factors: list[str] = []
    score = 0

    if profile.age_under_1h and age_hours < 1:
        score += profile.age_under_1h
        factors.append("Listed less than 1 hour ago, very high rug risk")
    elif profile.age_under_6h and age_hours < 6:
        score += profile.age_under_6h
        factors.append("Listed less than 6 hours ago, new token risk")
    elif profile.age_under_24h and age_hours < 24:
        score += profile.age_under_24h
        factors.append("Listed less than 24 hours ago")

    if token.liquidity_usd < 10_000:
        score += profile.liquidity_under_10k
        factors.append("Liquidity too low (<$10k), heavy slippage")
    elif token.liquidity_usd < 50_000:
        score += profile.liquidity_under_50k
        factors.append("Low liquidity (<$50k)")

    if token.market_cap < 100_000:
        score += profile.market_cap_under_100k
        factors.append("Market cap too small (<$100k), extreme volatility")

    if profile.holders_under_100 and token.holder_count < 100:
        score += profile.holders_under_100
        factors.append("Too few holders (<100), concentrated supply")

    for flag in extra_flags:
        score += flag.weight
        factors.append(flag.factor)

    score = clamp_score(score)
    return RiskAssessment(score=score, level=risk_level_for(score, profile), factors=factors)


def new_signal_id(prefix: str, address: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}_{address[-6:]}"


def build_signal(
    *,
    platform: Platform,
    chain: str,
    token: TokenSnapshot,
    signal_type: SignalType,
    raw_data: dict[str, Any],
    scoring: ScoringProfile,
    risk: RiskProfile,
    now: datetime,
    extra_flags: Iterable[RiskFlag] = (),
) -> AggregatedSignal:
    """Normalize one provider observation into a scored, risk-rated signal"""
    age_hours = hours_between(token.created_at, now)
    is_new = age_hours <= NEW_TOKEN_MAX_AGE_HOURS

    score = compute_score(token, is_new, scoring)
    assessment = assess_risk(token, age_hours, risk, extra_flags)

    return AggregatedSignal(
        id=new_signal_id(platform.value[:4], token.address),
        token_address=token.address,
        chain=chain,
        timestamp=now,
        token=token,
        type=signal_type,
        score=score,
        urgency=determine_urgency(score, is_new, token.volume_24h),
        sources=[
            SignalSource(
                platform=platform, raw_data=raw_data, timestamp=now, confidence=score
            )
        ],
        metrics=SignalMetrics(
            platform_count=1,
            confirming_platforms=[platform],
            volume_score=min(token.volume_24h / 10_000, 100.0),
            price_score=(
                min(token.price_change_24h, 100.0) if token.price_change_24h > 0 else 0.0
            ),
        ),
        risk_level=assessment.level,
        risk_factors=assessment.factors,
        is_new_token=is_new,
        age_hours=age_hours,
    )
