from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field, field_validator

from shared.timeutils import parse_timestamp, utc_now


class OrderedLevel(str, Enum):
    """String enum whose members compare by declaration order.

    Members declared first rank lowest. Comparing members of two different
    level enums is not supported.
    """

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def _check(self, other: Any) -> bool:
        return type(other) is type(self)

    def __lt__(self, other: Any) -> bool:
        if not self._check(other):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: Any) -> bool:
        if not self._check(other):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: Any) -> bool:
        if not self._check(other):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: Any) -> bool:
        if not self._check(other):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def highest(cls, levels: Iterable["OrderedLevel"]) -> Any:
        """Most severe level in ``levels``, or the lowest member when empty"""
        members = list(levels)
        if not members:
            return list(cls)[0]
        return max(members, key=lambda level: level.rank)


class Urgency(OrderedLevel):
    """How quickly a signal should be acted upon"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(OrderedLevel):
    """Risk severity levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class SignalType(str, Enum):
    """Kind of market event a signal reports"""

    NEW_LISTING = "new_listing"
    VOLUME_SPIKE = "volume_spike"
    PRICE_SPIKE = "price_spike"
    WHALE_BUY = "whale_buy"
    TRENDING = "trending"
    SMART_MONEY = "smart_money"


class Platform(str, Enum):
    """Market-data platforms a signal can originate from"""

    DEXSCREENER = "dexscreener"
    BIRDEYE = "birdeye"
    HELIUS = "helius"
    SOLSCAN = "solscan"
    DEFINED = "defined"


class TokenSnapshot(BaseModel):
    """Token market data captured at observation time"""

    address: str = Field(..., description="Token contract address")
    symbol: str = Field("UNKNOWN", description="Token ticker symbol")
    name: str = Field("Unknown Token", description="Token display name")
    price_usd: float = Field(0.0, ge=0, description="Price in USD")
    market_cap: float = Field(0.0, ge=0, description="Market capitalisation in USD")
    liquidity_usd: float = Field(0.0, ge=0, description="Pool liquidity in USD")
    volume_24h: float = Field(0.0, ge=0, description="24h traded volume in USD")
    price_change_24h: float = Field(0.0, description="24h price change in percent")
    holder_count: int = Field(0, ge=0, description="Number of holding wallets")
    created_at: datetime = Field(
        default_factory=utc_now, description="Token or pair creation time"
    )

    model_config = {"frozen": True}

    @field_validator("created_at", mode="before")
    @classmethod
    def validate_created_at(cls, v: Any) -> datetime:
        return parse_timestamp(v)


class SignalSource(BaseModel):
    """One platform's contribution to a signal"""

    platform: Platform
    raw_data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    confidence: float = Field(..., ge=0, le=100)

    model_config = {"frozen": True}


class SignalMetrics(BaseModel):
    """Multi-source confirmation counters and per-dimension sub-scores"""

    platform_count: int = Field(1, ge=0)
    confirming_platforms: list[Platform] = Field(default_factory=list)
    volume_score: float = Field(0.0, ge=0, le=100)
    price_score: float = Field(0.0, ge=0, le=100)
    social_score: float = Field(0.0, ge=0, le=100)
    whale_score: float = Field(0.0, ge=0, le=100)

    model_config = {"frozen": True}


class AggregatedSignal(BaseModel):
    """Scored, risk-annotated observation that a token merits evaluation"""

    id: str = Field(..., description="Unique signal identifier")
    token_address: str = Field(..., description="Token contract address")
    chain: str = Field(..., description="Chain identifier (e.g. solana)")
    timestamp: datetime = Field(default_factory=utc_now, description="Observation time")

    token: TokenSnapshot
    type: SignalType = SignalType.NEW_LISTING

    score: int = Field(..., ge=0, le=100, description="Evaluation worthiness 0-100")
    urgency: Urgency = Urgency.LOW

    sources: list[SignalSource] = Field(default_factory=list)
    metrics: SignalMetrics = Field(default_factory=SignalMetrics)

    risk_level: RiskLevel = RiskLevel.LOW
    risk_factors: list[str] = Field(default_factory=list)

    is_new_token: bool = False
    age_hours: float = Field(0.0, ge=0)

    model_config = {"frozen": True}

    @field_validator("timestamp", mode="before")
    @classmethod
    def validate_timestamp(cls, v: Any) -> datetime:
        return parse_timestamp(v)

    @property
    def token_key(self) -> tuple[str, str]:
        """Composite identity used for merging and duplicate suppression"""
        return (self.chain, self.token_address)

    @property
    def symbol(self) -> str:
        return self.token.symbol
