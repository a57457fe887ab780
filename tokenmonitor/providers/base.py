"""
Provider adapter base classes.

An adapter wraps one market-data API. Public ``get_*`` methods never raise:
transport failures and exhausted quotas yield an empty list so one broken
provider cannot abort an aggregation pass.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Any

import httpx

from contracts.signal import AggregatedSignal, Platform
from shared.timeutils import Clock, utc_now

logger = logging.getLogger(__name__)


def as_float(value: Any) -> float:
    """Lenient numeric coercion for provider payload fields"""
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


class ProviderError(Exception):
    """Transport or protocol failure talking to a market-data provider"""

    def __init__(self, platform: Platform, message: str) -> None:
        super().__init__(f"{platform.value}: {message}")
        self.platform = platform


# Transport failures plus payloads whose fields do not fit a TokenSnapshot
PARSE_ERRORS = (ProviderError, ValueError, TypeError, AttributeError)


class MinIntervalThrottle:
    """Spaces consecutive requests at least ``min_interval`` seconds apart"""

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
            self._last_request = time.monotonic()


class RequestBudget:
    """Daily request quota that resets when the UTC date changes"""

    def __init__(self, daily_limit: int, clock: Clock = utc_now) -> None:
        self.daily_limit = daily_limit
        self.used = 0
        self._clock = clock
        self._day: date = clock().date()

    def _roll(self) -> None:
        today = self._clock().date()
        if today != self._day:
            self._day = today
            self.used = 0

    def try_consume(self) -> bool:
        self._roll()
        if self.used >= self.daily_limit:
            return False
        self.used += 1
        return True

    @property
    def remaining(self) -> int:
        self._roll()
        return max(self.daily_limit - self.used, 0)


class ProviderAdapter(ABC):
    """Base class for market-data provider adapters"""

    platform: Platform

    def __init__(
        self,
        base_url: str,
        timeout: float,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.clock = clock
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json", **(headers or {})},
        )

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.platform, f"HTTP {e.response.status_code} for {path}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.platform, f"request to {path} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(self.platform, f"invalid JSON from {path}") from e

    @abstractmethod
    async def get_new_listings(self, chain: str) -> list[AggregatedSignal]:
        """Signals for tokens created within the last 24 hours"""

    @abstractmethod
    async def get_trending(self, chain: str) -> list[AggregatedSignal]:
        """Signals for tokens with unusual volume or price movement"""

    @abstractmethod
    def get_remaining_requests(self) -> int:
        """Requests left in the current quota window"""

    async def health_check(self) -> dict[str, Any]:
        remaining = self.get_remaining_requests()
        return {
            "status": "healthy" if remaining > 0 else "degraded",
            "platform": self.platform.value,
            "remaining_requests": remaining,
        }

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
