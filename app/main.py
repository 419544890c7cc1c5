"""
FastAPI Application - CryptoLizard Market Cache API

Serves a periodically refreshed, in-memory cache of CoinGecko market data.

Startup:
    The lifespan handler validates configuration, opens the CoinGecko client,
    creates the single CacheStore and launches two background tasks: the
    bootstrap sequencer (runs once, ~12 minutes for 50 coins) and the refresh
    scheduler (waits for readiness, then ticks every 5 minutes). Until
    bootstrap completes every data endpoint answers 503.

Endpoints:
    - GET /api/coins          - Top coins, current fields only
    - GET /api/coin/{coin_id} - One coin with historical series per period
    - GET /api/global         - Global market stats
    - GET /api/trending       - Trending coins and categories
    - GET /health             - Liveness / readiness summary (always 200)

Usage:
    uvicorn app.main:app --host 0.0.0.0 --port 8080

Docs:
    - Swagger: http://localhost:8080/docs
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings, validate_configuration
from core.logging import logger
from core.periods import PERIOD_NAMES
from core.schemas import CoinDetail, CoinSnapshot, GlobalStats, HealthStatus, TrendingSnapshot
from providers.coingecko import CoinGeckoAPIClient
from services.bootstrap import BootstrapSequencer
from services.query_service import CoinNotFoundError, NotReadyError, QueryService
from services.refresh_scheduler import RefreshScheduler
from storage.cache_store import CacheStore


# ============================================
# Lifespan Management
# ============================================

async def _run_bootstrap(sequencer: BootstrapSequencer) -> None:
    try:
        await sequencer.run()
    except asyncio.CancelledError:
        logger.info("Bootstrap cancelled")
        raise
    except Exception:
        logger.exception("Bootstrap failed; cache will stay in loading state")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the cache and its background tasks; tear them down on exit."""
    logger.info("=== CryptoLizard Server Starting ===")
    validate_configuration()

    client = CoinGeckoAPIClient()
    await client.open()

    store = CacheStore()
    scheduler = RefreshScheduler(client, store)
    bootstrap_task = asyncio.create_task(
        _run_bootstrap(BootstrapSequencer(client, store)), name="bootstrap"
    )
    await scheduler.start()

    app.state.store = store
    app.state.query_service = QueryService(store)
    logger.info("=== Started; bootstrap running in background ===")

    yield

    logger.info("=== Shutting Down ===")
    await scheduler.stop()
    bootstrap_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await bootstrap_task
    await client.close()
    logger.info("=== Shutdown Complete ===")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="CryptoLizard Market Cache API",
    description=(
        "In-memory cache of CoinGecko market data for the top coins.\n\n"
        "## REST Endpoints\n"
        "- `GET /api/coins` - Top coins with current market fields\n"
        "- `GET /api/coin/{coin_id}` - One coin with historical series "
        f"({', '.join(PERIOD_NAMES)})\n"
        "- `GET /api/global` - Global market stats\n"
        "- `GET /api/trending` - Trending coins and categories\n"
        "- `GET /health` - Readiness summary\n\n"
        "Data endpoints return 503 while the initial load is running."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["GET"],
    allow_headers=["*"]
)


def get_query_service(request: Request) -> QueryService:
    """Dependency: the query service created by the lifespan handler."""
    return request.app.state.query_service


def _not_ready(e: NotReadyError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(e))


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information."""
    return {
        "name": "CryptoLizard Market Cache API",
        "version": "1.0.0",
        "docs": "/docs",
        "periods": PERIOD_NAMES
    }


@app.get("/health", response_model=HealthStatus, tags=["System"])
async def health_check(queries: QueryService = Depends(get_query_service)):
    """Readiness summary. Always answers, even while loading."""
    return await queries.get_health()


# ============================================
# Market Data Endpoints
# ============================================

@app.get("/api/coins", response_model=List[CoinSnapshot], tags=["Market Data"])
async def list_coins(queries: QueryService = Depends(get_query_service)):
    """
    Top coins by market cap with current fields and 7d sparkline.

    Example:
        GET /api/coins
    """
    try:
        return await queries.list_coins()
    except NotReadyError as e:
        raise _not_ready(e)


@app.get("/api/coin/{coin_id}", response_model=CoinDetail, tags=["Market Data"])
async def get_coin(coin_id: str, queries: QueryService = Depends(get_query_service)):
    """
    One coin with every populated historical period.

    Example:
        GET /api/coin/bitcoin
    """
    try:
        return await queries.get_coin(coin_id)
    except NotReadyError as e:
        raise _not_ready(e)
    except CoinNotFoundError:
        raise HTTPException(status_code=404, detail="Coin not found")


@app.get("/api/global", response_model=GlobalStats, tags=["Market Data"])
async def get_global(queries: QueryService = Depends(get_query_service)):
    """Total market cap, volume, BTC dominance and 24h cap change."""
    try:
        return await queries.get_global_stats()
    except NotReadyError as e:
        raise _not_ready(e)


@app.get("/api/trending", response_model=TrendingSnapshot, tags=["Market Data"])
async def get_trending(queries: QueryService = Depends(get_query_service)):
    """Trending coins and the top trending categories."""
    try:
        return await queries.get_trending()
    except NotReadyError as e:
        raise _not_ready(e)
