"""
Test Suite

Contains unit tests for the market cache server.

Structure:
- tests/unit/: Tests for individual components (periods, resampler, cache
  store, bootstrap, refresh scheduler, query service, provider client, HTTP)
- tests/unit/conftest.py: FakeProvider and shared cache fixtures

Uses pytest with pytest-asyncio for testing async functionality.
"""
