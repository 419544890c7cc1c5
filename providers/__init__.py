"""
Upstream Providers Package

Each provider lives in its own subfolder and implements
core.provider_interface.MarketDataProvider. Only CoinGecko is supported;
the cache is built around a single upstream and a single quote currency.
"""
