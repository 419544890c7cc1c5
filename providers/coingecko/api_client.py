"""
CoinGecko REST API Client

This module provides an async HTTP client for the CoinGecko v3 public API.
It handles:
- Global request pacing (a fixed minimum delay between call starts)
- Error mapping to ProviderError / ProviderParseError
- Data normalization to our schemas

API Documentation:
    https://docs.coingecko.com/v3.0.1/reference/introduction

Rate Limits:
    - The demo tier allows roughly 30 calls per minute
    - This client spaces the *start* of consecutive calls by at least
      settings.rate_limit_ms (2000 ms), whoever the caller is
    - There is no retry at this layer; callers decide what a failure means

Usage:
    async with CoinGeckoAPIClient() as client:
        coins = await client.get_top_coins(50)
        chart = await client.get_market_chart("bitcoin", days=7)
"""

import asyncio
import time
from typing import Any, Callable, Awaitable, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from core.config import settings
from core.logging import get_logger, log_api_request, log_api_response
from core.provider_interface import MarketDataProvider, ProviderError, ProviderParseError
from core.schemas import (
    CoinSnapshot,
    GlobalStats,
    PricePoint,
    TrendingCategory,
    TrendingCoin,
    TrendingSnapshot,
)


# Positional display labels for trending categories
TRENDING_LABELS = [
    "🔥 Trending #1",
    "📈 Growing fast",
    "🚀 Popular today",
    "⭐ Hot searches",
    "💎 Rising interest",
]
DEFAULT_TRENDING_LABEL = "📊 Trending"
TOP_CATEGORIES = 5


def trending_label(position: int) -> str:
    """Label for the category at a zero-based list position."""
    if 0 <= position < len(TRENDING_LABELS):
        return TRENDING_LABELS[position]
    return DEFAULT_TRENDING_LABEL


class CoinGeckoAPIClient(MarketDataProvider):
    """
    Async HTTP client for the CoinGecko v3 REST API

    All methods return normalized data using our Pydantic schemas. Every call
    goes through _get(), which serializes requests and enforces the minimum
    start-to-start delay.

    Attributes:
        base_url: CoinGecko API base URL
        api_key: Optional demo API key
        min_interval: Seconds between the start of two calls
        timeout: Total timeout of a single call in seconds
        session: aiohttp ClientSession for HTTP requests

    Example:
        >>> async with CoinGeckoAPIClient() as client:
        ...     stats = await client.get_global_stats()
        ...     print(f"BTC dominance: {stats.btc_dominance:.1f}%")
    """

    name = "coingecko"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        min_interval: Optional[float] = None,
        timeout: Optional[int] = None,
        vs_currency: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.coingecko_base_url).rstrip("/")
        self.api_key = settings.coingecko_api_key if api_key is None else api_key
        self.min_interval = settings.rate_limit_seconds if min_interval is None else min_interval
        self.timeout = timeout or settings.request_timeout
        self.vs_currency = (vs_currency or settings.vs_currency).lower()
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

        # Pacing state; clock and sleep are attributes so tests can drive them
        self._pace_lock = asyncio.Lock()
        self._last_call_started: Optional[float] = None
        self._clock: Callable[[], float] = time.monotonic
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    # ============================================
    # Session Management
    # ============================================

    async def open(self) -> None:
        """Create the HTTP session (idempotent)."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug("CoinGeckoAPIClient session created")

    async def close(self) -> None:
        """Close the HTTP session if open."""
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug("CoinGeckoAPIClient session closed")
        self.session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Paced Request Handler
    # ============================================

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key
        return headers

    async def _wait_for_slot(self) -> None:
        """Sleep until min_interval has passed since the previous call started."""
        if self._last_call_started is None:
            return
        wait = self._last_call_started + self.min_interval - self._clock()
        if wait > 0:
            self.logger.debug(f"Pacing upstream call: sleeping {wait:.2f}s")
            await self._sleep(wait)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make one paced GET request to CoinGecko.

        Only one request is in flight at a time. The start of this request is
        at least min_interval seconds after the start of the previous one.

        Args:
            path: API endpoint path (e.g., "/coins/markets")
            params: Optional query parameters

        Returns:
            Decoded JSON body

        Raises:
            RuntimeError: If the session was not opened
            ProviderError: On transport failure, timeout or non-200 status
            ProviderParseError: If the body is not valid JSON
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' or open().")

        async with self._pace_lock:
            await self._wait_for_slot()
            self._last_call_started = self._clock()
            return await self._request(path, params)

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        log_api_request(self.name, path, params)
        started = self._clock()

        try:
            async with self.session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise ProviderError(f"HTTP {resp.status} on {path}: {text[:200]}")

                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise ProviderParseError(f"Invalid JSON from {path}: {e}") from e

                log_api_response(self.name, path, resp.status, self._clock() - started)
                return data

        except asyncio.TimeoutError as e:
            raise ProviderError(f"Timeout after {self.timeout}s on {path}") from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"Request failed on {path}: {e}") from e

    # ============================================
    # API Methods
    # ============================================

    async def get_top_coins(self, limit: int) -> List[CoinSnapshot]:
        """
        Fetch the top coins by market cap with 7d sparkline and 24h change.

        CoinGecko Endpoint:
            GET /coins/markets

        Response Format:
            [
              {
                "id": "bitcoin", "symbol": "btc", "name": "Bitcoin",
                "image": "https://...", "current_price": 42000,
                "market_cap": 820000000000, "market_cap_rank": 1,
                "total_volume": 21000000000,
                "price_change_percentage_24h": 1.23,
                "circulating_supply": 19500000, "total_supply": 21000000,
                "max_supply": 21000000, "ath": 69045,
                "ath_change_percentage": -39.2, "ath_date": "2021-11-10T14:24:11.849Z",
                "sparkline_in_7d": {"price": [41000.1, ...]}
              }
            ]

        Notes:
            A single malformed entry is skipped with a warning; the rest of
            the list is kept.
        """
        params = {
            "vs_currency": self.vs_currency,
            "order": "market_cap_desc",
            "per_page": limit,
            "page": 1,
            "sparkline": "true",
            "price_change_percentage": "24h",
        }

        self.logger.info(f"Fetching top {limit} coins")
        data = await self._get("/coins/markets", params)

        if not isinstance(data, list):
            raise ProviderParseError(f"/coins/markets returned {type(data).__name__}, expected list")

        coins: List[CoinSnapshot] = []
        for item in data:
            if not isinstance(item, dict):
                self.logger.warning(f"Skipping non-object coin entry {item!r:.80}")
                continue
            try:
                coins.append(self._parse_market_coin(item))
            except (KeyError, TypeError, AttributeError, ValueError, ValidationError) as e:
                self.logger.warning(f"Skipping malformed coin entry {item!r:.80}: {e}")

        self.logger.info(f"Fetched {len(coins)} coins")
        return coins

    def _parse_market_coin(self, item: Dict[str, Any]) -> CoinSnapshot:
        sparkline = (item.get("sparkline_in_7d") or {}).get("price") or []
        return CoinSnapshot(
            id=item["id"],
            rank=item.get("market_cap_rank"),
            name=item.get("name"),
            symbol=item.get("symbol"),
            logo=item.get("image"),
            price=item.get("current_price"),
            change_24h=item.get("price_change_percentage_24h"),
            market_cap=item.get("market_cap"),
            volume_24h=item.get("total_volume"),
            circulating_supply=item.get("circulating_supply"),
            total_supply=item.get("total_supply"),
            max_supply=item.get("max_supply"),
            ath=item.get("ath"),
            ath_change_percentage=item.get("ath_change_percentage"),
            ath_date=item.get("ath_date"),
            sparkline_data=[float(p) for p in sparkline if p is not None],
        )

    async def get_market_chart(self, coin_id: str, days: int) -> List[PricePoint]:
        """
        Fetch the raw price series of a coin for the last `days` days.

        CoinGecko Endpoint:
            GET /coins/{id}/market_chart

        Response Format:
            {
              "prices": [[1704110400000, 42000.1], ...],
              "market_caps": [...],
              "total_volumes": [...]
            }

        Notes:
            Granularity is chosen by CoinGecko from the window: 5-minute for
            1 day, hourly up to 90 days, daily beyond.
        """
        params = {"vs_currency": self.vs_currency, "days": days}

        self.logger.debug(f"Fetching market chart: {coin_id} ({days}d)")
        data = await self._get(f"/coins/{coin_id}/market_chart", params)

        if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
            raise ProviderParseError(f"Market chart for {coin_id} ({days}d) has no 'prices' list")

        try:
            points = [
                PricePoint(time=int(item[0]), price=float(item[1]))
                for item in data["prices"]
            ]
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise ProviderParseError(f"Malformed price point for {coin_id} ({days}d): {e}") from e

        self.logger.debug(f"Fetched {len(points)} raw points for {coin_id} ({days}d)")
        return points

    async def get_global_stats(self) -> GlobalStats:
        """
        Fetch global market statistics.

        CoinGecko Endpoint:
            GET /global

        Response Format:
            {
              "data": {
                "active_cryptocurrencies": 13690,
                "total_market_cap": {"usd": 1.7e12, ...},
                "total_volume": {"usd": 6.1e10, ...},
                "market_cap_percentage": {"btc": 49.8, ...},
                "market_cap_change_percentage_24h_usd": 1.72
              }
            }
        """
        self.logger.info("Fetching global market stats")
        data = await self._get("/global")

        try:
            stats = data["data"]
            result = GlobalStats(
                total_market_cap=stats["total_market_cap"][self.vs_currency],
                total_volume=stats["total_volume"][self.vs_currency],
                btc_dominance=(stats.get("market_cap_percentage") or {}).get("btc"),
                active_cryptocurrencies=stats.get("active_cryptocurrencies") or 0,
                market_cap_change_24h=stats.get(f"market_cap_change_percentage_24h_{self.vs_currency}"),
            )
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ProviderParseError(f"Malformed /global response: {e}") from e

        self.logger.info(
            f"Global stats: cap ${result.total_market_cap / 1e12:.2f}T, "
            f"volume ${result.total_volume / 1e9:.1f}B, BTC {result.btc_dominance:.1f}%"
        )
        return result

    async def get_trending(self) -> TrendingSnapshot:
        """
        Fetch trending coins and categories.

        CoinGecko Endpoint:
            GET /search/trending

        Response Format:
            {
              "coins": [{"item": {"id": "pepe", "name": "Pepe", "symbol": "PEPE",
                                  "thumb": "https://...", "market_cap_rank": 38}}],
              "categories": [{"id": 1, "name": "Meme"}, ...]
            }

        Notes:
            Only the first TOP_CATEGORIES categories are kept, each labelled
            by position via trending_label().
        """
        self.logger.info("Fetching trending coins")
        data = await self._get("/search/trending")

        if not isinstance(data, dict):
            raise ProviderParseError(f"/search/trending returned {type(data).__name__}, expected object")

        try:
            coins = [
                TrendingCoin(
                    id=entry["item"]["id"],
                    name=entry["item"].get("name") or "",
                    symbol=entry["item"].get("symbol") or "",
                    logo=entry["item"].get("thumb") or "",
                    rank=entry["item"].get("market_cap_rank"),
                )
                for entry in data.get("coins") or []
                if isinstance(entry, dict) and "item" in entry
            ]
            categories = [
                TrendingCategory(name=cat.get("name") or "", trend=trending_label(i))
                for i, cat in enumerate((data.get("categories") or [])[:TOP_CATEGORIES])
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ProviderParseError(f"Malformed /search/trending response: {e}") from e

        self.logger.info(f"Fetched {len(coins)} trending coins, {len(categories)} categories")
        return TrendingSnapshot(coins=coins, categories=categories)
