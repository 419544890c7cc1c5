"""
CoinGecko Provider

    providers/coingecko/
    ├── __init__.py          # This file
    └── api_client.py        # Paced REST client with aiohttp
"""

from .api_client import CoinGeckoAPIClient, trending_label

__all__ = ["CoinGeckoAPIClient", "trending_label"]
