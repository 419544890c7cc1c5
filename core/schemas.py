"""
Normalized Data Schemas

This module defines the Pydantic models for everything the cache holds and
serves. CoinGecko responses are normalized into these models by the provider
client, stored by the cache, and returned by the query service unchanged.

Models:
    - PricePoint: One (time, price) point of a historical series
    - CoinSnapshot: Identity and current market fields of one ranked coin
    - CoinDetail: CoinSnapshot plus its per-period historical series
    - GlobalStats: Whole-market aggregates
    - TrendingCoin / TrendingCategory / TrendingSnapshot: Trending lists
    - HealthStatus: Liveness / readiness summary

Serialization:
    Multi-word fields carry camelCase aliases (marketCap, historicalData, ...)
    which is what the HTTP layer emits. Models accept either the alias or the
    Python field name on input.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict


# ============================================
# Base Model
# ============================================

class CacheModel(BaseModel):
    """
    Base model for all cached data.

    Enables population by field name as well as by alias, so the provider
    client can build models with snake_case keyword arguments while the API
    emits camelCase.
    """

    model_config = ConfigDict(populate_by_name=True)


def _none_to_zero(v):
    """CoinGecko sends null for unknown supplies, caps and changes."""
    return 0.0 if v is None else v


def _none_to_empty(v):
    return "" if v is None else v


# ============================================
# Historical Series Point
# ============================================

class PricePoint(CacheModel):
    """
    A single point of a historical price series.

    Attributes:
        time: Milliseconds since epoch (UTC)
        price: Price in the quote currency

    Example:
        >>> PricePoint(time=1704110400000, price=42000.5)
    """

    time: int = Field(..., ge=0, description="Timestamp in milliseconds since epoch")
    price: float = Field(..., description="Price in the quote currency")


# ============================================
# Coin Snapshot
# ============================================

class CoinSnapshot(CacheModel):
    """
    Identity and current market data for one ranked coin.

    Refreshed in place on every tick (price, change, market cap, volume,
    rank, sparkline). Supply and all-time-high fields are set at bootstrap
    and when a coin first enters the ranking.

    Example:
        >>> CoinSnapshot(id="bitcoin", symbol="btc", name="Bitcoin", rank=1, price=42000.0)
    """

    id: str = Field(..., description="Provider coin id", examples=["bitcoin"])
    symbol: str = Field(default="", description="Ticker symbol", examples=["btc"])
    name: str = Field(default="", description="Display name", examples=["Bitcoin"])
    rank: int = Field(default=0, description="Market cap rank (0 if unranked)")
    logo: str = Field(default="", description="Image URL")

    price: float = Field(default=0.0, description="Current price")
    change_24h: float = Field(default=0.0, alias="change24h", description="24h price change (%)")
    market_cap: float = Field(default=0.0, alias="marketCap")
    volume_24h: float = Field(default=0.0, alias="volume24h")

    circulating_supply: float = Field(default=0.0, alias="circulatingSupply")
    total_supply: float = Field(default=0.0, alias="totalSupply")
    max_supply: float = Field(default=0.0, alias="maxSupply")

    ath: float = Field(default=0.0, description="All-time-high price")
    ath_change_percentage: float = Field(default=0.0, alias="athChangePercentage")
    ath_date: str = Field(default="", alias="athDate", description="ISO date of the all-time high")

    sparkline_data: List[float] = Field(
        default_factory=list,
        alias="sparklineData",
        description="Recent 7-day sparkline prices"
    )

    @field_validator(
        "price", "change_24h", "market_cap", "volume_24h",
        "circulating_supply", "total_supply", "max_supply",
        "ath", "ath_change_percentage",
        mode="before"
    )
    @classmethod
    def validate_numeric(cls, v):
        """Treat null numeric fields as zero"""
        return _none_to_zero(v)

    @field_validator("symbol", "name", "logo", "ath_date", mode="before")
    @classmethod
    def validate_text(cls, v):
        """Treat null text fields as empty"""
        return _none_to_empty(v)

    @field_validator("rank", mode="before")
    @classmethod
    def validate_rank(cls, v):
        """Unranked coins come back with a null rank"""
        return 0 if v is None else v

    @field_validator("sparkline_data", mode="before")
    @classmethod
    def validate_sparkline(cls, v):
        return [] if v is None else v


class CoinDetail(CoinSnapshot):
    """
    A coin as the cache stores it: current fields plus historical series.

    historical_data maps a retention period name ("24h", "7d", ...) to an
    ordered list of points. A missing key means that period was never
    populated for this coin; it is not the same as an empty list.
    """

    historical_data: Dict[str, List[PricePoint]] = Field(
        default_factory=dict,
        alias="historicalData",
        description="Period name -> ordered (time, price) points"
    )

    def to_snapshot(self) -> CoinSnapshot:
        """Drop the historical map, keeping only current fields."""
        return CoinSnapshot.model_validate(self.model_dump(exclude={"historical_data"}))


# ============================================
# Global Market Statistics
# ============================================

class GlobalStats(CacheModel):
    """
    Whole-market aggregates from the provider's global endpoint.

    Single instance in the cache; every fetch replaces it entirely.
    """

    total_market_cap: float = Field(default=0.0, alias="totalMarketCap")
    total_volume: float = Field(default=0.0, alias="totalVolume")
    btc_dominance: float = Field(default=0.0, alias="btcDominance", description="BTC share of total cap (%)")
    active_cryptocurrencies: int = Field(default=0, alias="activeCryptocurrencies")
    market_cap_change_24h: float = Field(default=0.0, alias="marketCapChange24h")

    @field_validator(
        "total_market_cap", "total_volume", "btc_dominance", "market_cap_change_24h",
        mode="before"
    )
    @classmethod
    def validate_numeric(cls, v):
        return _none_to_zero(v)


# ============================================
# Trending
# ============================================

class TrendingCoin(CacheModel):
    """A coin from the provider's trending search list."""

    id: str
    name: str = ""
    symbol: str = ""
    logo: str = Field(default="", description="Thumbnail URL")
    rank: int = Field(default=0, description="Market cap rank (0 if unranked)")

    @field_validator("rank", mode="before")
    @classmethod
    def validate_rank(cls, v):
        return 0 if v is None else v


class TrendingCategory(CacheModel):
    """
    A trending category with a positional display label.

    The trend label is decorative: it reflects list position only.
    """

    name: str
    trend: str


class TrendingSnapshot(CacheModel):
    """Trending coins and categories, replaced together on every fetch."""

    coins: List[TrendingCoin] = Field(default_factory=list)
    categories: List[TrendingCategory] = Field(default_factory=list)


# ============================================
# Health
# ============================================

class HealthStatus(CacheModel):
    """
    Liveness summary. Always available, even while bootstrapping.

    Attributes:
        status: "ready" once bootstrap completed, otherwise "loading"
        coins_loaded: Number of coins currently in the cache
        refresh_ticks: Refresh ticks completed since readiness
        last_refresh: UTC time of the most recent tick (None before the first)
    """

    status: str = Field(..., examples=["ready", "loading"])
    coins_loaded: int = 0
    refresh_ticks: int = 0
    last_refresh: Optional[datetime] = None
