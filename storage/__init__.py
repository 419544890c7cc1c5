"""
Storage Package

Holds the in-memory market cache. Nothing is persisted: the cache is rebuilt
from the upstream provider on every process start.
"""

from storage.cache_store import CacheState, CacheStore

__all__ = ["CacheState", "CacheStore"]
