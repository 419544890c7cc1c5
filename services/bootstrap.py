"""
Bootstrap Sequencer

Populates the cache from nothing to ready, once, at startup. Phases run
strictly in order and never in parallel; the upstream pacing budget is what
bounds the whole sequence, not CPU.

Phases:
    1. List       - ranked coin list (one call). Retried with capped exponential
                    backoff until it returns at least one coin.
    2. Historical - for every coin, for every retention period: one market
                    chart call, resampled to the period capacity. A failed or
                    empty period is skipped for that coin only.
    3. Trending   - one call, replaces trending coins and categories.
    4. Global     - one call, replaces global stats.
    5. Ready      - the cache starts serving.

With 50 coins the historical phase is 350 calls, about 12 minutes at one call
every 2 seconds.
"""

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, List, Optional

from core.config import settings
from core.logging import get_logger
from core.periods import RETENTION_PERIODS
from core.provider_interface import MarketDataProvider, ProviderError
from core.schemas import CoinSnapshot, GlobalStats, PricePoint, TrendingSnapshot
from services.resampler import resample_period
from storage.cache_store import CacheState, CacheStore, merge_coin, set_history


class BootstrapError(RuntimeError):
    """The coin list could not be fetched within the allowed attempts."""


@dataclass
class BootstrapReport:
    """Outcome of one bootstrap run, for logging and tests."""

    coins_loaded: int = 0
    periods_loaded: int = 0
    periods_failed: int = 0
    list_attempts: int = 0
    trending_loaded: bool = False
    global_loaded: bool = False


def _store_coins(coins: List[CoinSnapshot], state: CacheState) -> int:
    for coin in coins:
        merge_coin(state, coin)
    return len(state.coins)


def _store_history(coin_id: str, period_name: str, points: List[PricePoint], state: CacheState) -> bool:
    return set_history(state, coin_id, period_name, points)


def _store_trending(trending: TrendingSnapshot, state: CacheState) -> None:
    state.trending = trending


def _store_global(stats: GlobalStats, state: CacheState) -> None:
    state.global_stats = stats


class BootstrapSequencer:
    """
    One-shot loader that fills a CacheStore and marks it ready.

    Args:
        provider: Upstream data source
        store: Cache to populate
        coin_count: Ranked list size (defaults to settings.top_coins_count)
        retry_base_delay: First backoff delay for the list phase (seconds)
        retry_max_delay: Backoff ceiling for the list phase (seconds)
        max_list_attempts: Give up after this many list attempts (None = never)

    Example:
        >>> async with CoinGeckoAPIClient() as client:
        ...     report = await BootstrapSequencer(client, store).run()
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        store: CacheStore,
        coin_count: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        retry_max_delay: Optional[float] = None,
        max_list_attempts: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.coin_count = coin_count or settings.top_coins_count
        self.retry_base_delay = (
            settings.bootstrap_retry_base_delay if retry_base_delay is None else retry_base_delay
        )
        self.retry_max_delay = (
            settings.bootstrap_retry_max_delay if retry_max_delay is None else retry_max_delay
        )
        self.max_list_attempts = max_list_attempts
        self._logger = get_logger(__name__)
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self) -> BootstrapReport:
        """Run all phases in order and open the readiness gate."""
        report = BootstrapReport()
        self._logger.info("=== Bootstrap starting ===")

        self._logger.info(f"Phase 1/4: fetching top {self.coin_count} coins")
        coins = await self._load_coin_list(report)

        self._logger.info(
            f"Phase 2/4: loading history for {len(coins)} coins "
            f"({len(coins) * len(RETENTION_PERIODS)} paced calls)"
        )
        await self._load_history(coins, report)

        self._logger.info("Phase 3/4: fetching trending coins")
        await self._load_trending(report)

        self._logger.info("Phase 4/4: fetching global market stats")
        await self._load_global(report)

        await self.store.mark_ready()
        self._logger.info(
            f"=== Bootstrap complete: {report.coins_loaded} coins, "
            f"{report.periods_loaded} periods loaded, {report.periods_failed} skipped ==="
        )
        return report

    # ============================================
    # Phases
    # ============================================

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.retry_base_delay * (2 ** (attempt - 1)), self.retry_max_delay)

    async def _load_coin_list(self, report: BootstrapReport) -> List[CoinSnapshot]:
        while True:
            report.list_attempts += 1
            attempt = report.list_attempts
            try:
                coins = await self.provider.get_top_coins(self.coin_count)
                if coins:
                    break
                self._logger.warning(f"[list phase] attempt {attempt}: provider returned no coins")
            except ProviderError as e:
                self._logger.error(f"[list phase] attempt {attempt} failed: {e}")

            if self.max_list_attempts is not None and attempt >= self.max_list_attempts:
                raise BootstrapError(f"Coin list unavailable after {attempt} attempts")

            delay = self._backoff_delay(attempt)
            self._logger.info(f"[list phase] retrying in {delay:.1f}s")
            await self._sleep(delay)

        report.coins_loaded = await self.store.mutate(partial(_store_coins, coins))
        for rank, coin in enumerate(coins, start=1):
            self._logger.debug(
                f"[{rank}/{len(coins)}] {coin.name} ({coin.symbol}) "
                f"${coin.price:,.4f} | 24h {coin.change_24h:+.2f}%"
            )
        self._logger.info(f"Fetched {len(coins)} coins")
        return coins

    async def _load_history(self, coins: List[CoinSnapshot], report: BootstrapReport) -> None:
        total = len(coins)
        for index, coin in enumerate(coins, start=1):
            self._logger.info(f"[{index}/{total}] {coin.name} history")
            for period in RETENTION_PERIODS:
                try:
                    raw = await self.provider.get_market_chart(coin.id, period.days)
                except ProviderError as e:
                    report.periods_failed += 1
                    self._logger.warning(
                        f"[history phase] skipping {period.name} for {coin.id}: {e}"
                    )
                    continue

                points = resample_period(raw, period)
                if not points:
                    report.periods_failed += 1
                    self._logger.warning(
                        f"[history phase] no points for {coin.id} {period.name}; left unpopulated"
                    )
                    continue

                stored = await self.store.mutate(
                    partial(_store_history, coin.id, period.name, points)
                )
                if stored:
                    report.periods_loaded += 1
                    self._logger.debug(f"    {coin.id} {period.name}: {len(points)} points")

    async def _load_trending(self, report: BootstrapReport) -> None:
        try:
            trending = await self.provider.get_trending()
        except ProviderError as e:
            self._logger.error(f"[trending phase] failed, trending stays empty: {e}")
            return
        await self.store.mutate(partial(_store_trending, trending))
        report.trending_loaded = True

    async def _load_global(self, report: BootstrapReport) -> None:
        try:
            stats = await self.provider.get_global_stats()
        except ProviderError as e:
            self._logger.error(f"[global phase] failed, stats stay at defaults: {e}")
            return
        await self.store.mutate(partial(_store_global, stats))
        report.global_loaded = True
