"""
Refresh Scheduler

Background service that keeps the cache live after bootstrap. It waits for
the readiness gate, then runs one tick every refresh interval (5 minutes by
default) for the lifetime of the process.

Each tick:
    1. One ranked-list call. Coins already cached get their current fields
       (price, 24h change, market cap, volume, rank, sparkline) overwritten;
       coins new to the ranking are appended with no history. Historical
       series are not touched here.
    2. For every coin, append (now, current price) to each populated period
       whose cadence gate is open on this tick number, evicting the oldest
       point once the period is at capacity.

Historical points are synthesized from the current price, so a tick costs
exactly one upstream call no matter how many coins or periods are cached.
If the list call fails the tick still appends, using the last known prices.
"""

import asyncio
import contextlib
import time
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Awaitable, Callable, List, Optional, Tuple

from core.config import settings
from core.logging import get_logger
from core.periods import RetentionPeriod, periods_due
from core.provider_interface import MarketDataProvider, ProviderError
from core.schemas import CoinSnapshot, PricePoint
from core.utils.time import current_utc_datetime, current_utc_timestamp
from storage.cache_store import REFRESH_FIELDS, CacheState, CacheStore, append_point, merge_coin


@dataclass
class TickReport:
    """What a single tick changed."""

    tick: int
    list_fetched: bool = False
    coins_updated: int = 0
    coins_added: int = 0
    points_appended: int = 0


def _apply_current_values(fresh: List[CoinSnapshot], state: CacheState) -> Tuple[int, int]:
    updated = added = 0
    for snapshot in fresh:
        if merge_coin(state, snapshot, fields=REFRESH_FIELDS):
            added += 1
        else:
            updated += 1
    return updated, added


def _append_rolling_points(
    due: List[RetentionPeriod],
    now_ms: int,
    tick: int,
    refreshed_at: datetime,
    state: CacheState,
) -> int:
    appended = 0
    for coin in state.coins:
        for period in due:
            series = coin.historical_data.get(period.name)
            if series is None:
                continue
            append_point(series, PricePoint(time=now_ms, price=coin.price), period.capacity)
            appended += 1
    state.refresh_ticks = tick
    state.last_refresh = refreshed_at
    return appended


class RefreshScheduler:
    """
    Cancellable background refresh loop.

    Args:
        provider: Upstream data source
        store: Cache to keep live
        interval_seconds: Seconds between ticks (defaults to settings)
        coin_count: Ranked list size requested per tick (defaults to settings)

    Example:
        >>> scheduler = RefreshScheduler(client, store)
        >>> await scheduler.start()   # returns immediately
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        store: CacheStore,
        interval_seconds: Optional[float] = None,
        coin_count: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.interval = interval_seconds or settings.refresh_interval_seconds
        self.coin_count = coin_count or settings.top_coins_count
        self._logger = get_logger(__name__)
        self._running = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._tick = 0
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
        self._clock: Callable[[], float] = time.monotonic

    @property
    def tick_count(self) -> int:
        """Number of ticks run so far."""
        return self._tick

    @property
    def running(self) -> bool:
        return self._running.is_set()

    async def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._logger.info(f"Starting refresh scheduler (every {self.interval}s once ready)")
        self._task = asyncio.create_task(self._run(), name="refresh_scheduler")

    async def stop(self) -> None:
        if not self._running.is_set():
            return
        self._logger.info("Stopping refresh scheduler...")
        self._running.clear()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    # ============================================
    # Core Loop
    # ============================================

    async def _run(self) -> None:
        await self.store.wait_until_ready()
        self._logger.info("Cache ready, refresh loop running")

        delay = self.interval
        while self._running.is_set():
            await self._sleep(delay)
            cycle_start = self._clock()
            try:
                report = await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception(f"Refresh tick {self._tick} failed")
                report = None

            # Ticks stay on a fixed period; time spent in the tick is not added to it
            elapsed = self._clock() - cycle_start
            delay = max(0.0, self.interval - elapsed)
            if report is not None:
                self._logger.info(
                    f"Tick {report.tick} done in {elapsed:.1f}s: {report.coins_updated} updated, "
                    f"{report.coins_added} added, {report.points_appended} points appended; "
                    f"next in {delay:.1f}s"
                )

    async def tick(self, now_ms: Optional[int] = None) -> TickReport:
        """
        Run one refresh tick.

        Args:
            now_ms: Timestamp for appended points (defaults to the current time)

        Returns:
            TickReport describing the changes
        """
        self._tick += 1
        report = TickReport(tick=self._tick)

        try:
            fresh = await self.provider.get_top_coins(self.coin_count)
            report.list_fetched = True
        except ProviderError as e:
            self._logger.warning(f"[tick {self._tick}] price update skipped, keeping last prices: {e}")
            fresh = []

        if fresh:
            report.coins_updated, report.coins_added = await self.store.mutate(
                partial(_apply_current_values, fresh)
            )
            if report.coins_added:
                self._logger.info(f"[tick {self._tick}] {report.coins_added} new coin(s) entered the ranking")

        if now_ms is None:
            now_ms = current_utc_timestamp(milliseconds=True)
        due = periods_due(self._tick)
        report.points_appended = await self.store.mutate(
            partial(_append_rolling_points, due, now_ms, self._tick, current_utc_datetime())
        )
        self._logger.debug(
            f"[tick {self._tick}] periods due: {', '.join(p.name for p in due)}"
        )
        return report
