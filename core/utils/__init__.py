"""
Core Utilities Package

Modules:
    - time: Millisecond timestamp helpers shared by the scheduler and the cache
"""

from core.utils.time import current_utc_datetime, current_utc_timestamp

__all__ = ["current_utc_datetime", "current_utc_timestamp"]
