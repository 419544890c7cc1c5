"""
Market Data Provider Interface

Abstract contract for the upstream data source. The bootstrap sequencer and
the refresh scheduler talk to the provider only through this interface, so the
cache engine never depends on CoinGecko's wire format and tests can substitute
an in-memory provider.

Four logical request shapes:
    - get_top_coins: ranked coin list with 24h change and sparkline
    - get_market_chart: raw (time, price) series for one coin and a day window
    - get_global_stats: whole-market aggregates
    - get_trending: trending coins and categories

Failure contract:
    Every method either returns normalized data or raises ProviderError.
    ProviderParseError is raised when a response arrives but has an
    unexpected shape. Callers decide whether to skip, log, or retry.
"""

from abc import ABC, abstractmethod
from typing import List

from core.schemas import CoinSnapshot, GlobalStats, PricePoint, TrendingSnapshot


class ProviderError(RuntimeError):
    """Upstream call failed (transport error, timeout, non-success status)."""


class ProviderParseError(ProviderError):
    """Upstream call succeeded but the body could not be normalized."""


class MarketDataProvider(ABC):
    """
    Abstract base class for upstream market data providers.

    Attributes:
        name: Provider identifier used in logs (e.g. "coingecko")
    """

    name: str = "base"

    @abstractmethod
    async def get_top_coins(self, limit: int) -> List[CoinSnapshot]:
        """
        Fetch the ranked coin list ordered by market cap.

        Args:
            limit: Number of coins to return

        Raises:
            ProviderError: If the call fails
        """

    @abstractmethod
    async def get_market_chart(self, coin_id: str, days: int) -> List[PricePoint]:
        """
        Fetch the raw price series for a coin over the last `days` days.

        Returns:
            Points ordered by time as the provider reports them (may be empty)

        Raises:
            ProviderError: If the call fails
        """

    @abstractmethod
    async def get_global_stats(self) -> GlobalStats:
        """Fetch whole-market aggregates."""

    @abstractmethod
    async def get_trending(self) -> TrendingSnapshot:
        """Fetch trending coins and the top trending categories."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
