"""
DexScreener adapter - free public API, no key required.

Trending pairs are approximated by expanding a fixed set of seed tokens into
their pairs, since the public API exposes no ranked trending endpoint.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from contracts.signal import AggregatedSignal, Platform, SignalType, TokenSnapshot
from shared.constants import (
    DEFAULT_CHAIN,
    DEXSCREENER_BASE_URL,
    DEXSCREENER_MIN_REQUEST_INTERVAL,
    DEXSCREENER_SEED_TOKENS,
    DEXSCREENER_TIMEOUT,
    NEW_TOKEN_MAX_AGE_HOURS,
    UNLIMITED_REQUESTS_SENTINEL,
)
from shared.timeutils import Clock, hours_between, parse_timestamp, utc_now
from tokenmonitor.providers.base import (
    PARSE_ERRORS,
    MinIntervalThrottle,
    ProviderAdapter,
    as_float,
)
from tokenmonitor.scoring import RiskFlag, RiskProfile, ScoringProfile, build_signal

logger = logging.getLogger(__name__)

DEXSCREENER_SCORING = ScoringProfile(
    volume_tier1=20,
    volume_tier2=15,
    liquidity=10,
    new_token=10,
    momentum_tier1=15,
    momentum_tier2=0,
    holders=0,
)

# No holder data and only the sub-hour age band
DEXSCREENER_RISK = RiskProfile(
    age_under_1h=20,
    age_under_6h=0,
    age_under_24h=0,
    liquidity_under_10k=30,
    liquidity_under_50k=15,
    market_cap_under_100k=20,
    holders_under_100=0,
    extreme_threshold=60,
    high_threshold=40,
    medium_threshold=20,
)

SELL_PRESSURE_FLAG = RiskFlag(25, "Sells far outnumber buys, heavy selling pressure")

MIN_TRENDING_VOLUME = 10_000
MIN_NEW_LISTING_VOLUME = 5_000
MIN_SPIKE_LIQUIDITY = 10_000
MAX_TRENDING_PAIRS = 50
MAX_SEARCH_RESULTS = 10


@dataclass(frozen=True)
class DexPair:
    """One normalized DexScreener trading pair"""

    chain_id: str
    dex_id: str
    url: str
    pair_address: str
    token: TokenSnapshot
    buys_24h: int
    sells_24h: int
    raw: dict[str, Any]


def normalize_pair(raw: dict[str, Any]) -> DexPair | None:
    """Convert a raw pair payload; pairs without a base token address are dropped"""
    base = raw.get("baseToken") or {}
    address = base.get("address")
    if not address:
        return None

    txns = (raw.get("txns") or {}).get("h24") or {}
    token = TokenSnapshot(
        address=address,
        symbol=base.get("symbol") or "UNKNOWN",
        name=base.get("name") or "Unknown Token",
        price_usd=as_float(raw.get("priceUsd")),
        market_cap=as_float(raw.get("marketCap") or raw.get("fdv")),
        liquidity_usd=as_float((raw.get("liquidity") or {}).get("usd")),
        volume_24h=as_float((raw.get("volume") or {}).get("h24")),
        price_change_24h=as_float((raw.get("priceChange") or {}).get("h24")),
        holder_count=int(as_float(raw.get("holders"))),
        created_at=parse_timestamp(raw.get("pairCreatedAt")),
    )
    return DexPair(
        chain_id=raw.get("chainId") or "",
        dex_id=raw.get("dexId") or "",
        url=raw.get("url") or "",
        pair_address=raw.get("pairAddress") or "",
        token=token,
        buys_24h=int(as_float(txns.get("buys"))),
        sells_24h=int(as_float(txns.get("sells"))),
        raw=raw,
    )


class DexScreenerAdapter(ProviderAdapter):
    platform = Platform.DEXSCREENER

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
        min_request_interval: float = DEXSCREENER_MIN_REQUEST_INTERVAL,
        seed_tokens: list[str] | None = None,
    ) -> None:
        super().__init__(
            DEXSCREENER_BASE_URL, DEXSCREENER_TIMEOUT, client=client, clock=clock
        )
        self.throttle = MinIntervalThrottle(min_request_interval)
        self.seed_tokens = list(seed_tokens or DEXSCREENER_SEED_TOKENS)

    async def _pairs(self, path: str, params: dict[str, Any] | None = None) -> list[DexPair]:
        await self.throttle.wait()
        data = await self._get_json(path, params=params)
        raw_pairs = data.get("pairs") if isinstance(data, dict) else None
        if not isinstance(raw_pairs, list):
            return []
        raw_pairs = [raw for raw in raw_pairs if isinstance(raw, dict)]
        return [pair for pair in map(normalize_pair, raw_pairs) if pair is not None]

    async def get_token_pairs(self, chain: str, token_address: str) -> list[DexPair]:
        """All pairs of ``token_address`` on ``chain``"""
        try:
            pairs = await self._pairs(f"/dex/tokens/{token_address}")
        except PARSE_ERRORS as e:
            logger.error(f"DexScreener token lookup failed for {token_address}: {e}")
            return []
        return [pair for pair in pairs if pair.chain_id == chain]

    async def search_tokens(self, query: str) -> list[DexPair]:
        try:
            pairs = await self._pairs("/dex/search", params={"q": query})
        except PARSE_ERRORS as e:
            logger.error(f"DexScreener search failed for {query!r}: {e}")
            return []
        return pairs[:MAX_SEARCH_RESULTS]

    async def get_trending_tokens(self, chain: str = DEFAULT_CHAIN) -> list[DexPair]:
        """Seed-token pairs deduplicated by base token, highest volume first"""
        all_pairs: list[DexPair] = []
        for seed in self.seed_tokens:
            all_pairs.extend(await self.get_token_pairs(chain, seed))

        seen: set[tuple[str, str]] = set()
        unique: list[DexPair] = []
        for pair in all_pairs:
            key = (pair.chain_id, pair.token.address)
            if key in seen:
                continue
            seen.add(key)
            unique.append(pair)

        trending = [p for p in unique if p.token.volume_24h > MIN_TRENDING_VOLUME]
        trending.sort(key=lambda p: p.token.volume_24h, reverse=True)
        return trending[:MAX_TRENDING_PAIRS]

    def _to_signal(self, pair: DexPair, signal_type: SignalType) -> AggregatedSignal:
        flags = []
        if pair.sells_24h > pair.buys_24h * 2:
            flags.append(SELL_PRESSURE_FLAG)
        return build_signal(
            platform=self.platform,
            chain=pair.chain_id,
            token=pair.token,
            signal_type=signal_type,
            raw_data=pair.raw,
            scoring=DEXSCREENER_SCORING,
            risk=DEXSCREENER_RISK,
            now=self.clock(),
            extra_flags=flags,
        )

    async def get_new_listings(self, chain: str = DEFAULT_CHAIN) -> list[AggregatedSignal]:
        logger.info(f"DexScreener fetching new listings on {chain}")
        now = self.clock()
        signals = [
            self._to_signal(pair, SignalType.NEW_LISTING)
            for pair in await self.get_trending_tokens(chain)
            if hours_between(pair.token.created_at, now) <= NEW_TOKEN_MAX_AGE_HOURS
            and pair.token.volume_24h > MIN_NEW_LISTING_VOLUME
        ]
        signals.sort(key=lambda s: s.score, reverse=True)
        return signals

    async def get_volume_spikes(
        self, chain: str = DEFAULT_CHAIN, min_volume_usd: float = 50_000
    ) -> list[AggregatedSignal]:
        logger.info(f"DexScreener fetching volume spikes on {chain}")
        signals = [
            self._to_signal(pair, SignalType.VOLUME_SPIKE)
            for pair in await self.get_trending_tokens(chain)
            if pair.token.volume_24h >= min_volume_usd
            and pair.token.liquidity_usd > MIN_SPIKE_LIQUIDITY
        ]
        signals.sort(key=lambda s: s.score, reverse=True)
        return signals

    async def get_trending(self, chain: str = DEFAULT_CHAIN) -> list[AggregatedSignal]:
        return await self.get_volume_spikes(chain)

    def get_remaining_requests(self) -> int:
        return UNLIMITED_REQUESTS_SENTINEL
