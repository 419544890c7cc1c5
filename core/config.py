"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Ships the reference pacing constants (50 coins, 5 minute ticks, 2000 ms
  between upstream calls) as defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.coingecko_base_url)
    print(settings.port)
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        coingecko_base_url: Base URL for the CoinGecko v3 API
        coingecko_api_key: Demo API key (optional, sent as x-cg-demo-api-key)
        vs_currency: Quote currency for all prices
        app_host: Host address for FastAPI server
        port: Port number for FastAPI server (PORT env var)
        log_level: Logging level
        request_timeout: Timeout for a single upstream call in seconds
        rate_limit_ms: Minimum delay between the starts of two upstream calls
        refresh_interval_seconds: Refresh scheduler tick interval
        top_coins_count: Size of the ranked coin list
        bootstrap_retry_base_delay: First backoff delay when the coin list fails
        bootstrap_retry_max_delay: Backoff ceiling for the coin list retries
        cors_origins: Comma-separated allowed CORS origins
    """

    # ============================================
    # CoinGecko API Configuration
    # ============================================

    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="CoinGecko API base URL"
    )

    coingecko_api_key: str = Field(
        default="",
        description="CoinGecko demo API key (optional)"
    )

    vs_currency: str = Field(
        default="usd",
        description="Quote currency for prices and market caps"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    port: int = Field(
        default=8080,
        description="FastAPI server port (read from PORT)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # Rate Limiting & Scheduling
    # ============================================

    request_timeout: int = Field(
        default=30,
        description="HTTP request timeout in seconds"
    )

    rate_limit_ms: int = Field(
        default=2000,
        description="Minimum milliseconds between the start of two upstream calls"
    )

    refresh_interval_seconds: int = Field(
        default=300,
        description="Seconds between refresh ticks"
    )

    top_coins_count: int = Field(
        default=50,
        description="Number of ranked coins kept in the cache"
    )

    bootstrap_retry_base_delay: float = Field(
        default=2.0,
        description="Initial backoff (seconds) when the coin list cannot be fetched"
    )

    bootstrap_retry_max_delay: float = Field(
        default=300.0,
        description="Maximum backoff (seconds) between coin list attempts"
    )

    # ============================================
    # CORS Configuration
    # ============================================

    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Returns:
            List of allowed origin URLs (e.g., ["*"] or ["http://localhost:3000"])
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def rate_limit_seconds(self) -> float:
        """Minimum inter-call delay expressed in seconds."""
        return self.rate_limit_ms / 1000.0


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings instance to check (defaults to the global settings)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # logging.py imports config.py, so we can't import at module level
    from core.logging import logger

    config = config or settings

    if not (1 <= config.port <= 65535):
        raise ValueError(f"Invalid port number: {config.port}. Must be between 1 and 65535")

    if config.top_coins_count <= 0:
        raise ValueError(f"TOP_COINS_COUNT must be positive, got {config.top_coins_count}")

    if config.refresh_interval_seconds <= 0:
        raise ValueError(
            f"REFRESH_INTERVAL_SECONDS must be positive, got {config.refresh_interval_seconds}"
        )

    if config.rate_limit_ms < 0:
        raise ValueError(f"RATE_LIMIT_MS cannot be negative, got {config.rate_limit_ms}")

    if config.request_timeout <= 0:
        raise ValueError(f"REQUEST_TIMEOUT must be positive, got {config.request_timeout}")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"CoinGecko API: {config.coingecko_base_url} (key {'set' if config.coingecko_api_key else 'not set'})")
    logger.info(f"Tracking top {config.top_coins_count} coins in {config.vs_currency.upper()}")
    logger.info(
        f"Pacing: {config.rate_limit_ms}ms between calls, "
        f"refresh every {config.refresh_interval_seconds}s"
    )
    logger.info(f"Server: {config.app_host}:{config.port}")
    logger.info(f"Log level: {config.log_level.upper()}")
