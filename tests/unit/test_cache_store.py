"""
Unit Tests for the In-Memory Cache Store

These tests verify that:
- Rolling windows never exceed capacity and stay ordered by time
- merge_coin updates current fields without touching history
- Unknown coins are appended, never rejected
- read() hands out copies, mutate() changes the shared state
- The readiness gate opens once and wakes waiters

Run with:
    pytest tests/unit/test_cache_store.py -v
"""

import asyncio
import random

import pytest

from core.periods import RETENTION_PERIODS
from core.schemas import CoinDetail, CoinSnapshot, PricePoint
from storage.cache_store import (
    REFRESH_FIELDS,
    CacheState,
    CacheStore,
    append_point,
    find_coin,
    merge_coin,
    set_history,
)

from conftest import make_coin, make_points


# ============================================
# Rolling Window
# ============================================

class TestAppendPoint:
    """Tests for append_point()"""

    @pytest.mark.parametrize("period", RETENTION_PERIODS, ids=lambda p: p.name)
    def test_length_never_exceeds_capacity(self, period):
        """Verify len(series) <= capacity after any number of appends"""
        series = []
        for i in range(period.capacity * 2 + 7):
            append_point(series, PricePoint(time=i, price=float(i)), period.capacity)
            assert len(series) <= period.capacity
        assert len(series) == period.capacity

    def test_evicts_oldest_first(self):
        """Verify FIFO eviction once full"""
        series = make_points(5, start=0, step=1)
        append_point(series, PricePoint(time=100, price=1.0), 5)

        assert [p.time for p in series] == [1, 2, 3, 4, 100]

    def test_timestamps_stay_non_decreasing(self):
        """Verify order survives appends with a jittery clock"""
        rng = random.Random(7)
        series = []
        for i in range(500):
            t = 1_000 + i * 10 + rng.randint(-30, 30)
            append_point(series, PricePoint(time=t, price=1.0), 84)

        times = [p.time for p in series]
        assert times == sorted(times)

    def test_older_point_is_clamped_to_tail(self):
        series = [PricePoint(time=500, price=1.0)]
        append_point(series, PricePoint(time=400, price=2.0), 10)

        assert series[-1].time == 500
        assert series[-1].price == 2.0


# ============================================
# State Helpers
# ============================================

class TestMergeCoin:
    """Tests for merge_coin() and find_coin()"""

    def test_unknown_coin_is_appended_with_empty_history(self):
        state = CacheState()
        added = merge_coin(state, make_coin(1))

        assert added is True
        assert len(state.coins) == 1
        assert isinstance(state.coins[0], CoinDetail)
        assert state.coins[0].historical_data == {}

    def test_existing_coin_keeps_history(self):
        """Verify current-field merge never alters historical keys"""
        history = {"24h": make_points(3), "7d": make_points(2)}
        state = CacheState(coins=[CoinDetail(id="coin-1", price=1.0, historical_data=history)])

        added = merge_coin(state, make_coin(1, price=999.0), fields=REFRESH_FIELDS)

        coin = find_coin(state, "coin-1")
        assert added is False
        assert coin.price == 999.0
        assert coin.rank == 1
        assert coin.historical_data == history

    def test_refresh_fields_leave_supply_untouched(self):
        state = CacheState(coins=[CoinDetail(id="coin-1", max_supply=21e6)])
        merge_coin(state, CoinSnapshot(id="coin-1", price=5.0, max_supply=0.0), fields=REFRESH_FIELDS)

        assert state.coins[0].max_supply == 21e6

    def test_find_coin_returns_none_for_unknown_id(self):
        assert find_coin(CacheState(), "nope") is None

    def test_set_history_for_missing_coin(self):
        assert set_history(CacheState(), "nope", "24h", make_points(2)) is False


# ============================================
# Store
# ============================================

class TestCacheStore:
    """Tests for CacheStore read/mutate/readiness"""

    @pytest.mark.asyncio
    async def test_read_returns_copy(self, store):
        """Verify callers cannot mutate the cache through read results"""
        await store.mutate(lambda s: merge_coin(s, make_coin(1)))

        coins = await store.read(lambda s: s.coins)
        coins[0].price = -1.0
        coins.append(CoinDetail(id="intruder"))

        assert await store.read(lambda s: [c.price for c in s.coins]) == [100.0]

    @pytest.mark.asyncio
    async def test_mutate_returns_fn_result(self, store):
        result = await store.mutate(lambda s: merge_coin(s, make_coin(1)))
        assert result is True

    @pytest.mark.asyncio
    async def test_snapshot_is_deep_copy(self, ready_store):
        snap = await ready_store.snapshot()
        snap.coins[0].historical_data["24h"].clear()

        series = await ready_store.read(lambda s: s.coins[0].historical_data["24h"])
        assert len(series) == 288

    @pytest.mark.asyncio
    async def test_mark_ready_opens_gate_and_wakes_waiter(self, store):
        assert store.is_ready is False
        waiter = asyncio.create_task(store.wait_until_ready())
        await asyncio.sleep(0)
        assert not waiter.done()

        await store.mark_ready()
        await asyncio.wait_for(waiter, timeout=1.0)

        assert store.is_ready is True

    @pytest.mark.asyncio
    async def test_store_built_ready_does_not_block_waiters(self, ready_store):
        await asyncio.wait_for(ready_store.wait_until_ready(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_concurrent_mutations_do_not_interleave(self, store):
        """Verify each mutate call applies as a whole"""
        await store.mutate(lambda s: [merge_coin(s, make_coin(i)) for i in range(1, 11)])

        def bump(state):
            for coin in state.coins:
                coin.price += 1.0
            return [c.price for c in state.coins]

        results = await asyncio.gather(*(store.mutate(bump) for _ in range(20)))

        for prices in results:
            # Every coin saw the same number of bumps within one call
            deltas = {p - 100.0 * i for i, p in enumerate(prices, start=1)}
            assert len(deltas) == 1
        assert await store.read(lambda s: s.coins[0].price) == 120.0
