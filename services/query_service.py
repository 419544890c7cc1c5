"""
Query Service

Read-only accessors over the cache, the boundary the HTTP layer calls into.
Every call returns a point-in-time copy taken under the cache lock.

Outcomes:
    - data            : the cache is ready
    - NotReadyError   : bootstrap has not finished (every operation but health)
    - CoinNotFoundError: get_coin with an id the cache does not hold
"""

from typing import List

from core.schemas import CoinDetail, CoinSnapshot, GlobalStats, HealthStatus, TrendingSnapshot
from storage.cache_store import CacheState, CacheStore, find_coin


class NotReadyError(RuntimeError):
    """The cache is still bootstrapping."""


class CoinNotFoundError(LookupError):
    """Requested coin id is not in the cache."""

    def __init__(self, coin_id: str):
        super().__init__(f"Coin not found: {coin_id}")
        self.coin_id = coin_id


class QueryService:
    """Read path over a CacheStore."""

    def __init__(self, store: CacheStore) -> None:
        self.store = store

    async def _read_ready(self, fn):
        # Readiness is checked under the same lock as the read itself
        def _guarded(state: CacheState):
            if not state.ready:
                raise NotReadyError("Server is still loading data...")
            return fn(state)

        return await self.store.read(_guarded)

    async def list_coins(self) -> List[CoinSnapshot]:
        """All cached coins, current fields only."""
        return await self._read_ready(lambda state: [c.to_snapshot() for c in state.coins])

    async def get_coin(self, coin_id: str) -> CoinDetail:
        """
        One coin with its full historical map.

        Raises:
            NotReadyError: Cache still bootstrapping
            CoinNotFoundError: Unknown coin id
        """
        coin = await self._read_ready(lambda state: find_coin(state, coin_id))
        if coin is None:
            raise CoinNotFoundError(coin_id)
        return coin

    async def get_global_stats(self) -> GlobalStats:
        return await self._read_ready(lambda state: state.global_stats)

    async def get_trending(self) -> TrendingSnapshot:
        return await self._read_ready(lambda state: state.trending)

    async def get_health(self) -> HealthStatus:
        """Liveness summary, answered in every state."""
        return await self.store.read(
            lambda state: HealthStatus(
                status="ready" if state.ready else "loading",
                coins_loaded=len(state.coins),
                refresh_ticks=state.refresh_ticks,
                last_refresh=state.last_refresh,
            )
        )
