"""
In-Memory Market Cache

The single shared dataset of the server: ranked coins with their historical
series, global stats, trending lists and the readiness flag.

Locking:
    One asyncio.Lock guards the whole CacheState. Every read and every
    mutation takes it for the duration of one in-memory call and never across
    an upstream request. Two mutations never overlap, even on unrelated coins,
    and a reader never sees a half-applied update.

Usage:
    store = CacheStore()
    await store.mutate(lambda state: merge_coin(state, snapshot))
    coins = await store.read(lambda state: [c.to_snapshot() for c in state.coins])
"""

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, TypeVar

from core.logging import get_logger
from core.schemas import CoinDetail, CoinSnapshot, GlobalStats, PricePoint, TrendingSnapshot

T = TypeVar("T")

logger = get_logger(__name__)

# Fields a refresh tick overwrites on a coin already in the cache
REFRESH_FIELDS = ("price", "change_24h", "market_cap", "volume_24h", "rank", "sparkline_data")

# Every current-value field of a snapshot (identity id excluded)
CURRENT_FIELDS = tuple(name for name in CoinSnapshot.model_fields if name != "id")


@dataclass
class CacheState:
    """
    The cached dataset. Only touched through CacheStore.read / mutate.

    Attributes:
        coins: Ranked coins in insertion order (bootstrap order, then newcomers)
        global_stats: Latest global aggregates
        trending: Latest trending coins and categories
        ready: True once bootstrap finished
        refresh_ticks: Number of refresh ticks applied
        last_refresh: Time of the last applied tick
    """

    coins: List[CoinDetail] = field(default_factory=list)
    global_stats: GlobalStats = field(default_factory=GlobalStats)
    trending: TrendingSnapshot = field(default_factory=TrendingSnapshot)
    ready: bool = False
    refresh_ticks: int = 0
    last_refresh: Optional[datetime] = None


# ============================================
# State Helpers (call inside mutate / read)
# ============================================

def find_coin(state: CacheState, coin_id: str) -> Optional[CoinDetail]:
    """Linear scan by coin id."""
    for coin in state.coins:
        if coin.id == coin_id:
            return coin
    return None


def merge_coin(
    state: CacheState,
    snapshot: CoinSnapshot,
    fields: Iterable[str] = CURRENT_FIELDS
) -> bool:
    """
    Merge a fresh snapshot into the cache.

    An existing coin gets the listed fields overwritten and keeps its
    historical map untouched. An unknown coin is appended with an empty
    historical map.

    Returns:
        True if the coin was appended, False if it was updated
    """
    existing = find_coin(state, snapshot.id)
    if existing is None:
        state.coins.append(CoinDetail.model_validate(snapshot.model_dump()))
        return True

    for name in fields:
        setattr(existing, name, copy.deepcopy(getattr(snapshot, name)))
    return False


def set_history(state: CacheState, coin_id: str, period_name: str, points: List[PricePoint]) -> bool:
    """
    Store a period's series under a coin, replacing any previous one.

    Returns:
        False if the coin is no longer in the cache
    """
    coin = find_coin(state, coin_id)
    if coin is None:
        return False
    coin.historical_data[period_name] = list(points)
    return True


def append_point(series: List[PricePoint], point: PricePoint, capacity: int) -> None:
    """
    Append to a rolling window, evicting the oldest points beyond capacity.

    A point older than the current tail is clamped to the tail's timestamp so
    the series stays non-decreasing in time.
    """
    if series and point.time < series[-1].time:
        point = PricePoint(time=series[-1].time, price=point.price)
    series.append(point)
    overflow = len(series) - capacity
    if overflow > 0:
        del series[:overflow]


# ============================================
# Cache Store
# ============================================

class CacheStore:
    """
    Owner of the shared CacheState.

    One instance is created at application startup and handed to the
    bootstrap sequencer, the refresh scheduler and the query service.

    Example:
        >>> store = CacheStore()
        >>> await store.mutate(lambda s: merge_coin(s, CoinSnapshot(id="bitcoin")))
        >>> await store.read(lambda s: len(s.coins))
        1
    """

    def __init__(self, state: Optional[CacheState] = None):
        self._state = state or CacheState()
        self._lock = asyncio.Lock()
        self._ready_event = asyncio.Event()
        if self._state.ready:
            self._ready_event.set()

    async def read(self, fn: Callable[[CacheState], T]) -> T:
        """
        Evaluate fn against the state under the lock.

        Returns:
            A deep copy of fn's result, safe to use after the lock is released
        """
        async with self._lock:
            return copy.deepcopy(fn(self._state))

    async def mutate(self, fn: Callable[[CacheState], T]) -> T:
        """Apply fn to the state atomically and return its result."""
        async with self._lock:
            return fn(self._state)

    async def snapshot(self) -> CacheState:
        """Deep copy of the whole state."""
        return await self.read(lambda state: state)

    async def mark_ready(self) -> None:
        """Open the readiness gate. Irreversible for the life of the store."""
        def _set(state: CacheState) -> int:
            state.ready = True
            return len(state.coins)

        coins = await self.mutate(_set)
        self._ready_event.set()
        logger.info(f"Cache ready with {coins} coins")

    @property
    def is_ready(self) -> bool:
        return self._state.ready

    async def wait_until_ready(self) -> None:
        """Block until mark_ready() has been called."""
        await self._ready_event.wait()
