"""
Core Package

Provider-agnostic building blocks of the cache server:
- config / logging: settings from the environment and the shared logger
- schemas: Pydantic models for coins, history points, global stats, trending
- periods: retention period table (capacity and refresh cadence)
- provider_interface: abstract contract every upstream provider implements
- utils: millisecond timestamp helpers
"""
