"""
Birdeye adapter - Solana token market data.

The public tier allows 100 requests per day; every HTTP call consumes one unit
of the ``RequestBudget`` and an exhausted budget short-circuits to ``[]``.
"""

import logging
from typing import Any

import httpx

from contracts.signal import AggregatedSignal, Platform, SignalType, TokenSnapshot
from shared.constants import (
    BIRDEYE_BASE_URL,
    BIRDEYE_DAILY_LIMIT,
    BIRDEYE_TIMEOUT,
    DEFAULT_CHAIN,
)
from shared.timeutils import Clock, parse_timestamp, utc_now
from tokenmonitor.providers.base import (
    PARSE_ERRORS,
    ProviderAdapter,
    RequestBudget,
    as_float,
)
from tokenmonitor.scoring import RiskFlag, RiskProfile, ScoringProfile, build_signal

logger = logging.getLogger(__name__)

BIRDEYE_SCORING = ScoringProfile(
    volume_tier1=15,
    volume_tier2=10,
    liquidity=10,
    new_token=10,
    momentum_tier1=15,
    momentum_tier2=10,
    holders=5,
)

BIRDEYE_RISK = RiskProfile()

UNVERIFIED_FLAG = RiskFlag(10, "Token contract is not verified")

PRICE_MOVER_MIN_CHANGE = 20.0
PRICE_MOVER_MIN_LIQUIDITY = 10_000
MARKETS_PATH = "/defi/v3/token/markets"


def _first(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return default


def extract_items(data: Any) -> list[dict[str, Any]]:
    """Unwrap ``data`` whether it is a bare list or an ``{"items": [...]}`` page"""
    payload = data.get("data") if isinstance(data, dict) else None
    if isinstance(payload, dict):
        payload = payload.get("items")
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


def normalize_token(raw: dict[str, Any]) -> tuple[TokenSnapshot, bool] | None:
    """Map a Birdeye token payload to a snapshot plus its verified flag"""
    address = _first(raw, "address", "tokenAddress")
    if not address:
        return None
    token = TokenSnapshot(
        address=address,
        symbol=_first(raw, "symbol", default="UNKNOWN"),
        name=_first(raw, "name", default="Unknown Token"),
        price_usd=as_float(_first(raw, "priceUsd", "price", default=0)),
        market_cap=as_float(_first(raw, "marketcap", "marketCap", "mc", default=0)),
        liquidity_usd=as_float(_first(raw, "liquidity", "liquidityUsd", default=0)),
        volume_24h=as_float(_first(raw, "v24hUSD", "volume24h", default=0)),
        price_change_24h=as_float(
            _first(raw, "priceChange24hPercent", "priceChange24h", default=0)
        ),
        holder_count=int(
            as_float(_first(raw, "holderCount", "holder", "uniqueWallet24h", default=0))
        ),
        created_at=parse_timestamp(
            _first(raw, "createdAt", "liquidityAddedAt", "creationTime")
        ),
    )
    return token, bool(raw.get("verified", False))


class BirdeyeAdapter(ProviderAdapter):
    platform = Platform.BIRDEYE

    def __init__(
        self,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
        daily_limit: int = BIRDEYE_DAILY_LIMIT,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-KEY"] = api_key
        super().__init__(
            BIRDEYE_BASE_URL, BIRDEYE_TIMEOUT, headers=headers, client=client, clock=clock
        )
        self.budget = RequestBudget(daily_limit, clock=clock)

    async def _request(self, path: str, params: dict[str, Any]) -> Any | None:
        """GET ``path`` if the daily budget allows; None when exhausted"""
        if not self.budget.try_consume():
            logger.warning(
                f"Birdeye daily request limit ({self.budget.daily_limit}) exhausted"
            )
            return None
        return await self._get_json(path, params=params)

    def _to_signal(
        self, raw: dict[str, Any], chain: str, signal_type: SignalType
    ) -> AggregatedSignal | None:
        normalized = normalize_token(raw)
        if normalized is None:
            return None
        token, verified = normalized
        return build_signal(
            platform=self.platform,
            chain=chain,
            token=token,
            signal_type=signal_type,
            raw_data=raw,
            scoring=BIRDEYE_SCORING,
            risk=BIRDEYE_RISK,
            now=self.clock(),
            extra_flags=() if verified else (UNVERIFIED_FLAG,),
        )

    async def get_trending_tokens(
        self, chain: str = DEFAULT_CHAIN, limit: int = 20, offset: int = 0
    ) -> list[TokenSnapshot]:
        """Tokens ranked by 24h USD volume"""
        try:
            data = await self._request(
                MARKETS_PATH,
                {
                    "sort_by": "v24hUSD",
                    "sort_type": "desc",
                    "offset": offset,
                    "limit": limit,
                    "chain": chain,
                },
            )
            return [n[0] for n in map(normalize_token, extract_items(data)) if n is not None]
        except PARSE_ERRORS as e:
            logger.error(f"Birdeye trending tokens failed: {e}")
            return []

    async def get_new_listings(self, chain: str = DEFAULT_CHAIN) -> list[AggregatedSignal]:
        logger.info(f"Birdeye fetching new listings on {chain}")
        try:
            data = await self._request(
                "/defi/v2/tokens/new_listing", {"limit": 20, "chain": chain}
            )
            signals = [
                signal
                for signal in (
                    self._to_signal(raw, chain, SignalType.NEW_LISTING)
                    for raw in extract_items(data)
                )
                if signal is not None
            ]
        except PARSE_ERRORS as e:
            logger.error(f"Birdeye new listings failed: {e}")
            return []
        signals.sort(key=lambda s: s.score, reverse=True)
        return signals

    async def get_price_movers(
        self, chain: str = DEFAULT_CHAIN, timeframe: str = "24h"
    ) -> list[AggregatedSignal]:
        """Tokens whose price moved more than 20% over ``timeframe`` ("1h" or "24h")"""
        change_key = "priceChange1hPercent" if timeframe == "1h" else "priceChange24hPercent"
        signals = []
        try:
            data = await self._request(
                MARKETS_PATH,
                {
                    "sort_by": change_key,
                    "sort_type": "desc",
                    "offset": 0,
                    "limit": 30,
                    "chain": chain,
                    "min_liquidity": PRICE_MOVER_MIN_LIQUIDITY,
                },
            )
            for raw in extract_items(data):
                if as_float(raw.get(change_key)) <= PRICE_MOVER_MIN_CHANGE:
                    continue
                signal = self._to_signal(raw, chain, SignalType.PRICE_SPIKE)
                if signal is not None:
                    signals.append(signal)
        except PARSE_ERRORS as e:
            logger.error(f"Birdeye price movers failed: {e}")
            return []
        return signals

    async def get_trending(self, chain: str = DEFAULT_CHAIN) -> list[AggregatedSignal]:
        return await self.get_price_movers(chain)

    async def get_token_info(
        self, address: str, chain: str = DEFAULT_CHAIN
    ) -> TokenSnapshot | None:
        try:
            data = await self._request(
                "/defi/v3/token/meta-data/single", {"address": address, "chain": chain}
            )
            payload = data.get("data") if isinstance(data, dict) else None
            if not isinstance(payload, dict):
                return None
            normalized = normalize_token(payload)
        except PARSE_ERRORS as e:
            logger.error(f"Birdeye token info failed for {address}: {e}")
            return None
        return normalized[0] if normalized else None

    async def search_tokens(
        self, query: str, chain: str = DEFAULT_CHAIN
    ) -> list[TokenSnapshot]:
        try:
            data = await self._request(
                "/defi/v1/search", {"keyword": query, "chain": chain, "limit": 10}
            )
            return [n[0] for n in map(normalize_token, extract_items(data)) if n is not None]
        except PARSE_ERRORS as e:
            logger.error(f"Birdeye search failed for {query!r}: {e}")
            return []

    def get_remaining_requests(self) -> int:
        return self.budget.remaining
