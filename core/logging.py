"""
Unified Logging Configuration

Sets up the centralized logging system for the cache server. Every module
obtains its logger from here instead of calling print().

Usage:
    from core.logging import logger, get_logger

    logger.info("Bootstrap finished")

    log = get_logger(__name__)
    log.warning("Skipping 7d history for bitcoin")

Log levels used by the cache engine:
    DEBUG    - Upstream request/response lines, per-period resample sizes
    INFO     - Bootstrap phases, per-coin progress, tick summaries
    WARNING  - Skipped units of work (one coin/period, one tick's list fetch)
    ERROR    - Failed phases (trending, global), unexpected loop errors

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "cryptolizard"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Server starting")
        2024-01-01 12:00:00 [INFO] cryptolizard Server starting
    """
    if log_format is None:
        format_parts = []
        if include_timestamp:
            format_parts.append("%(asctime)s")
        format_parts.append("[%(levelname)s]")
        if include_module:
            format_parts.append("%(name)s")
        format_parts.append("%(message)s")
        log_format = " ".join(format_parts)

    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(level)
    return app_logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: e.g. "cryptolizard.services.bootstrap"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an upstream API request with consistent formatting.

    Example:
        >>> log_api_request("coingecko", "/coins/bitcoin/market_chart", {"days": 7})
        [DEBUG] API Request: coingecko /coins/bitcoin/market_chart | Params: {'days': 7}
    """
    if params:
        logger.debug(f"API Request: {provider} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an upstream API response with status and timing information.

    Example:
        >>> log_api_response("coingecko", "/global", 200, 0.342)
        [DEBUG] API Response: coingecko /global | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


logger.debug("Logging system initialized")
