"""Market-data provider adapters."""

from tokenmonitor.providers.base import ProviderAdapter, ProviderError
from tokenmonitor.providers.birdeye import BirdeyeAdapter
from tokenmonitor.providers.dexscreener import DexScreenerAdapter

__all__ = ["BirdeyeAdapter", "DexScreenerAdapter", "ProviderAdapter", "ProviderError"]
