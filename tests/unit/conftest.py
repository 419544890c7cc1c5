"""
Shared fixtures for the cache engine tests.

FakeProvider implements MarketDataProvider in memory so the bootstrap
sequencer, refresh scheduler and query service can be exercised without
network access or pacing delays.
"""

from typing import Callable, Dict, List, Optional, Set, Tuple

import pytest

from core.periods import RETENTION_PERIODS
from core.provider_interface import MarketDataProvider, ProviderError
from core.schemas import (
    CoinDetail,
    CoinSnapshot,
    GlobalStats,
    PricePoint,
    TrendingCategory,
    TrendingCoin,
    TrendingSnapshot,
)
from storage.cache_store import CacheState, CacheStore


# ============================================
# Builders
# ============================================

def make_coin(index: int, price: float = None) -> CoinSnapshot:
    """Coin number `index` (1-based) with deterministic fields."""
    return CoinSnapshot(
        id=f"coin-{index}",
        symbol=f"c{index}",
        name=f"Coin {index}",
        rank=index,
        price=price if price is not None else 100.0 * index,
        change_24h=1.5,
        market_cap=1_000_000.0 * index,
        volume_24h=50_000.0 * index,
        sparkline_data=[1.0, 2.0, 3.0],
    )


def make_points(count: int, start: int = 1_700_000_000_000, step: int = 60_000, price: float = 10.0) -> List[PricePoint]:
    return [PricePoint(time=start + i * step, price=price + i) for i in range(count)]


def full_history(start: int = 1_700_000_000_000) -> Dict[str, List[PricePoint]]:
    """Every period filled to capacity."""
    return {p.name: make_points(p.capacity, start=start) for p in RETENTION_PERIODS}


# ============================================
# Fake Provider
# ============================================

class FakeProvider(MarketDataProvider):
    """
    In-memory provider.

    Attributes:
        coins: Returned by get_top_coins (truncated to limit)
        chart: Callable (coin_id, days) -> raw points
        chart_failures: (coin_id, days) pairs that raise ProviderError
        list_failures: Number of leading get_top_coins calls that raise
        trending_error / global_error: Raise from those calls when True
        calls: Log of every call in order
    """

    name = "fake"

    def __init__(self, coins: Optional[List[CoinSnapshot]] = None) -> None:
        self.coins = coins or []
        self.chart: Callable[[str, int], List[PricePoint]] = lambda coin_id, days: make_points(days + 1)
        self.chart_failures: Set[Tuple[str, int]] = set()
        self.list_failures = 0
        self.trending_error = False
        self.global_error = False
        self.trending = TrendingSnapshot(
            coins=[TrendingCoin(id="pepe", name="Pepe", symbol="PEPE", rank=38)],
            categories=[TrendingCategory(name="Meme", trend="🔥 Trending #1")],
        )
        self.global_stats = GlobalStats(
            total_market_cap=1.7e12,
            total_volume=6.1e10,
            btc_dominance=49.8,
            active_cryptocurrencies=13690,
            market_cap_change_24h=1.72,
        )
        self.calls: List[Tuple] = []

    async def get_top_coins(self, limit: int) -> List[CoinSnapshot]:
        self.calls.append(("top_coins", limit))
        if self.list_failures > 0:
            self.list_failures -= 1
            raise ProviderError("simulated list failure")
        return [c.model_copy(deep=True) for c in self.coins[:limit]]

    async def get_market_chart(self, coin_id: str, days: int) -> List[PricePoint]:
        self.calls.append(("market_chart", coin_id, days))
        if (coin_id, days) in self.chart_failures:
            raise ProviderError(f"simulated transport failure for {coin_id} {days}d")
        return self.chart(coin_id, days)

    async def get_global_stats(self) -> GlobalStats:
        self.calls.append(("global",))
        if self.global_error:
            raise ProviderError("simulated global failure")
        return self.global_stats

    async def get_trending(self) -> TrendingSnapshot:
        self.calls.append(("trending",))
        if self.trending_error:
            raise ProviderError("simulated trending failure")
        return self.trending


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def provider():
    """FakeProvider preloaded with 50 ranked coins"""
    return FakeProvider([make_coin(i) for i in range(1, 51)])


@pytest.fixture
def store():
    """Empty, not-ready cache"""
    return CacheStore()


@pytest.fixture
def ready_store():
    """Ready cache with three coins, all periods full"""
    coins = [
        CoinDetail.model_validate({**make_coin(i).model_dump(), "historical_data": full_history()})
        for i in range(1, 4)
    ]
    state = CacheState(
        coins=coins,
        global_stats=GlobalStats(total_market_cap=1.0e12, btc_dominance=50.0),
        trending=TrendingSnapshot(categories=[TrendingCategory(name="AI", trend="🔥 Trending #1")]),
        ready=True,
    )
    return CacheStore(state)
