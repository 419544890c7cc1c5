"""
Unit Tests for the Query Service

These tests verify that:
- Every data operation signals not-ready until bootstrap completes
- All operations switch to ready together
- Unknown coin ids signal not-found (never not-ready) once ready
- Results are copies that cannot change the cache
- Health answers in every state

Run with:
    pytest tests/unit/test_query_service.py -v
"""

import pytest

from core.periods import PERIOD_NAMES
from core.schemas import CoinDetail, CoinSnapshot
from services.query_service import CoinNotFoundError, NotReadyError, QueryService
from storage.cache_store import merge_coin

from conftest import make_coin


class TestNotReady:
    """Queries before readiness"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation,args", [
        ("list_coins", ()),
        ("get_coin", ("coin-1",)),
        ("get_global_stats", ()),
        ("get_trending", ()),
    ])
    async def test_data_operations_raise_not_ready(self, store, operation, args):
        # Coins already present must still not be served
        await store.mutate(lambda s: merge_coin(s, make_coin(1)))
        queries = QueryService(store)

        with pytest.raises(NotReadyError):
            await getattr(queries, operation)(*args)

    @pytest.mark.asyncio
    async def test_unknown_coin_before_ready_is_not_ready(self, store):
        with pytest.raises(NotReadyError):
            await QueryService(store).get_coin("does-not-exist")

    @pytest.mark.asyncio
    async def test_health_reports_loading(self, store):
        await store.mutate(lambda s: merge_coin(s, make_coin(1)))
        health = await QueryService(store).get_health()

        assert health.status == "loading"
        assert health.coins_loaded == 1
        assert health.last_refresh is None


class TestReady:
    """Queries after readiness"""

    @pytest.mark.asyncio
    async def test_all_operations_become_ready_together(self, store):
        await store.mutate(lambda s: merge_coin(s, make_coin(1)))
        queries = QueryService(store)
        await store.mark_ready()

        assert len(await queries.list_coins()) == 1
        assert (await queries.get_coin("coin-1")).id == "coin-1"
        assert await queries.get_global_stats() is not None
        assert await queries.get_trending() is not None
        assert (await queries.get_health()).status == "ready"

    @pytest.mark.asyncio
    async def test_list_coins_has_current_fields_only(self, ready_store):
        coins = await QueryService(ready_store).list_coins()

        assert [c.id for c in coins] == ["coin-1", "coin-2", "coin-3"]
        for coin in coins:
            assert type(coin) is CoinSnapshot
            assert "historicalData" not in coin.model_dump(by_alias=True)

    @pytest.mark.asyncio
    async def test_get_coin_includes_full_history(self, ready_store):
        coin = await QueryService(ready_store).get_coin("coin-2")

        assert isinstance(coin, CoinDetail)
        assert list(coin.historical_data) == PERIOD_NAMES
        assert len(coin.historical_data["24h"]) == 288

    @pytest.mark.asyncio
    async def test_unknown_coin_is_not_found(self, ready_store):
        with pytest.raises(CoinNotFoundError) as exc_info:
            await QueryService(ready_store).get_coin("dogwifhat")

        assert exc_info.value.coin_id == "dogwifhat"

    @pytest.mark.asyncio
    async def test_results_are_point_in_time_copies(self, ready_store):
        queries = QueryService(ready_store)
        coin = await queries.get_coin("coin-1")
        coin.price = 0.0
        coin.historical_data["24h"].clear()

        fresh = await queries.get_coin("coin-1")
        assert fresh.price == 100.0
        assert len(fresh.historical_data["24h"]) == 288

    @pytest.mark.asyncio
    async def test_global_and_trending_values(self, ready_store):
        queries = QueryService(ready_store)

        stats = await queries.get_global_stats()
        trending = await queries.get_trending()

        assert stats.total_market_cap == 1.0e12
        assert stats.btc_dominance == 50.0
        assert [c.name for c in trending.categories] == ["AI"]
