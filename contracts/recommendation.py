import logging
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field

from contracts.signal import AggregatedSignal, OrderedLevel, RiskLevel
from shared.timeutils import utc_now

logger = logging.getLogger(__name__)


class Recommendation(OrderedLevel):
    """Advisory verdict, ordered by conviction"""

    AVOID = "avoid"
    WATCH = "watch"
    BUY = "buy"
    STRONG_BUY = "strong_buy"


class PositionSize(str, Enum):
    """Suggested position size bucket"""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class TimeHorizon(str, Enum):
    """Suggested holding period"""

    SCALP = "scalp"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class EntryStrategy(BaseModel):
    """Suggested entry, exit and sizing parameters"""

    suggested_entry_price: float = Field(..., ge=0, description="Entry price in USD")
    suggested_stop_loss: float = Field(..., ge=0, description="Stop loss price in USD")
    suggested_take_profit: float = Field(
        ..., ge=0, description="Take profit price in USD"
    )
    position_size: PositionSize = PositionSize.SMALL
    max_position_usd: float = Field(200.0, ge=0)
    time_horizon: TimeHorizon = TimeHorizon.SHORT

    model_config = {"frozen": True}


class RiskAnalysis(BaseModel):
    """Advisory-level risk breakdown"""

    rug_risk: float = Field(..., ge=0, le=100)
    volatility_risk: float = Field(..., ge=0, le=100)
    liquidity_risk: float = Field(..., ge=0, le=100)
    overall_risk: RiskLevel = RiskLevel.MEDIUM
    warnings: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class AIAnalysisResult(BaseModel):
    """Structured recommendation tied to exactly one signal"""

    signal_id: str = Field(..., description="Id of the analysed signal")
    recommendation: Recommendation
    confidence: float = Field(..., ge=0, le=100)
    reasoning: list[str] = Field(
        default_factory=list, description="Justifications, most significant first"
    )
    entry_strategy: EntryStrategy
    risk_analysis: RiskAnalysis
    key_observations: list[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=utc_now)
    ai_model: str = Field(..., description="Advisory implementation that produced this")

    model_config = {"frozen": True, "protected_namespaces": ()}

    @property
    def is_actionable(self) -> bool:
        return self.recommendation in (Recommendation.BUY, Recommendation.STRONG_BUY)


class AnalysisDecodeError(ValueError):
    """Raised when an advisory payload cannot be turned into a result"""


def _coerce_enum(value: Any, enum_cls: type[Enum], default: Enum) -> Any:
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    if value is not None:
        logger.debug(f"Unrecognized {enum_cls.__name__} value {value!r}, using {default.value}")
    return default


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().rstrip("%"))
        except ValueError:
            return None
    return None


def _clamped(value: Any, default: float) -> float:
    number = _number(value)
    if number is None:
        return default
    return max(0.0, min(100.0, number))


def _positive(value: Any, default: float) -> float:
    number = _number(value)
    if number is None or number <= 0:
        return default
    return number


def _text_list(value: Any, default: list[str]) -> list[str]:
    if not isinstance(value, list):
        return list(default)
    return [str(item) for item in value if item is not None and str(item).strip()]


def decode_analysis(
    payload: Any, signal: AggregatedSignal, ai_model: str
) -> AIAnalysisResult:
    """Validate and normalize a delegated backend's JSON payload.

    Unknown enum values are coerced to safe defaults (watch, small, medium,
    short) and numeric fields are clamped rather than rejected. Only a payload
    that is not a JSON object is a decode error.
    """
    if not isinstance(payload, Mapping):
        raise AnalysisDecodeError(
            f"Advisory payload must be a JSON object, got {type(payload).__name__}"
        )

    price = signal.token.price_usd
    entry = payload.get("entryStrategy") or payload.get("entry_strategy")
    entry = entry if isinstance(entry, Mapping) else {}
    risk = payload.get("riskAnalysis") or payload.get("risk_analysis")
    risk = risk if isinstance(risk, Mapping) else {}

    def pick(source: Mapping[str, Any], camel: str, snake: str) -> Any:
        return source.get(camel, source.get(snake))

    return AIAnalysisResult(
        signal_id=signal.id,
        recommendation=_coerce_enum(
            payload.get("recommendation"), Recommendation, Recommendation.WATCH
        ),
        confidence=_clamped(payload.get("confidence"), 50.0),
        reasoning=_text_list(payload.get("reasoning"), ["Analysis completed"]),
        entry_strategy=EntryStrategy(
            suggested_entry_price=_positive(
                pick(entry, "suggestedEntryPrice", "suggested_entry_price"), price
            ),
            suggested_stop_loss=_positive(
                pick(entry, "suggestedStopLoss", "suggested_stop_loss"), price * 0.8
            ),
            suggested_take_profit=_positive(
                pick(entry, "suggestedTakeProfit", "suggested_take_profit"), price * 1.5
            ),
            position_size=_coerce_enum(
                pick(entry, "positionSize", "position_size"),
                PositionSize,
                PositionSize.SMALL,
            ),
            max_position_usd=_positive(
                pick(entry, "maxPositionUsd", "max_position_usd"), 200.0
            ),
            time_horizon=_coerce_enum(
                pick(entry, "timeHorizon", "time_horizon"),
                TimeHorizon,
                TimeHorizon.SHORT,
            ),
        ),
        risk_analysis=RiskAnalysis(
            rug_risk=_clamped(pick(risk, "rugRisk", "rug_risk"), 50.0),
            volatility_risk=_clamped(pick(risk, "volatilityRisk", "volatility_risk"), 50.0),
            liquidity_risk=_clamped(pick(risk, "liquidityRisk", "liquidity_risk"), 50.0),
            overall_risk=_coerce_enum(
                pick(risk, "overallRisk", "overall_risk"), RiskLevel, RiskLevel.MEDIUM
            ),
            warnings=_text_list(risk.get("warnings"), []),
        ),
        key_observations=_text_list(
            pick(payload, "keyObservations", "key_observations"), []
        ),
        analyzed_at=utc_now(),
        ai_model=ai_model,
    )
