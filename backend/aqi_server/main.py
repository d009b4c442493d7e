"""
PurpleAir AQI Server - Backend API
==================================
FastAPI application that serves the current Air Quality Index for one
PurpleAir sensor.

ARCHITECTURE:
    [api.purpleair.com] <--hourly-- [RefreshCycle] --writes--> [AqiCache]
                                                                    ^
                                                                    | reads
    [Your dashboard / widget] --GET /aqi--> [AQI router] -----------+

    The refresh runs once at startup and then every hour on the hour.
    Requests never wait on PurpleAir, they only read the cache.

HOW TO RUN:
    # Install
    pip install -e .

    # Copy environment config
    cp env.example.txt .env
    # Edit .env with your SENSOR_ID and API_KEY

    # Run the server
    uvicorn aqi_server.main:app --port 8080

API DOCUMENTATION:
    After starting the server, visit:
    - Swagger UI: http://localhost:8080/docs
    - ReDoc: http://localhost:8080/redoc

Author: AQI Server Team
"""

import os
import sys
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Mapping, Optional
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from aqi_server.exceptions import ConfigError
from aqi_server.routers import aqi_router, set_aqi_cache, set_refresh_cycle
from aqi_server.routers.aqi import get_refresh_cycle
from aqi_server.services import AqiCache, PurpleAirService, RefreshCycle
from aqi_server.utils.validation import (
    validate_api_key,
    validate_base_url,
    validate_refresh_interval,
    validate_sensor_id,
    validate_timeout,
)


# Load environment variables from .env file
load_dotenv()


# =============================================================================
# LOGGING
# =============================================================================

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='[%(asctime)s] %(message)s',
    datefmt='%H:%M:%S',
    handlers=[logging.StreamHandler(sys.stderr)]
)
logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

def _number_env(environ: Mapping[str, str], name: str, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(name, f"expected a number, got {raw!r}")


class Config:
    """
    Application configuration loaded from environment variables.

    Environment Variables:
        SENSOR_ID: PurpleAir sensor index (required)
        API_KEY: PurpleAir read API key (required)
        PURPLEAIR_API_URL: API root (default: https://api.purpleair.com/v1)
        REFRESH_INTERVAL: Seconds between refreshes (default: 3600)
        REQUEST_TIMEOUT: Seconds to wait for PurpleAir (default: 30)
        SHUTDOWN_TIMEOUT: Seconds to let a running refresh finish on shutdown (default: 30)
        STALE_AFTER: Seconds after which the AQI counts as stale (default: 2 x REFRESH_INTERVAL)
        FRONTEND_URL: URL of a frontend for CORS

    The required values are checked when the app starts, not at import.
    """

    # Frontend URL for CORS
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Allowed CORS origins
    CORS_ORIGINS = [
        FRONTEND_URL,
        "http://localhost:5173",    # Vite dev server
        "http://localhost:3000",    # Create React App
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

    def __init__(
        self,
        sensor_id: str,
        api_key: str,
        api_url: str = PurpleAirService.DEFAULT_BASE_URL,
        refresh_interval: int = 3600,
        request_timeout: float = 30.0,
        shutdown_timeout: float = 30.0,
        stale_after: Optional[int] = None,
    ):
        self.sensor_id = sensor_id
        self.api_key = api_key
        self.api_url = api_url
        self.refresh_interval = refresh_interval
        self.request_timeout = request_timeout
        self.shutdown_timeout = shutdown_timeout
        self.stale_after = stale_after if stale_after is not None else 2 * refresh_interval

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build the config from the environment.

        Raises:
            ConfigError: if SENSOR_ID / API_KEY are missing or anything is invalid
        """
        environ = os.environ if environ is None else environ

        sensor_id = environ.get("SENSOR_ID", "").strip()
        if not sensor_id:
            raise ConfigError("SENSOR_ID", "not set")
        if not validate_sensor_id(sensor_id):
            raise ConfigError("SENSOR_ID", "should be the numeric PurpleAir sensor index")

        api_key = environ.get("API_KEY", "").strip()
        if not api_key:
            raise ConfigError("API_KEY", "not set")
        if not validate_api_key(api_key):
            raise ConfigError("API_KEY", "contains characters that can't go in a header")

        api_url = environ.get("PURPLEAIR_API_URL", "").strip() or PurpleAirService.DEFAULT_BASE_URL
        if not validate_base_url(api_url):
            raise ConfigError("PURPLEAIR_API_URL", f"not an http(s) URL: {api_url!r}")

        refresh_interval = _number_env(environ, "REFRESH_INTERVAL", 3600, int)
        if not validate_refresh_interval(refresh_interval):
            raise ConfigError("REFRESH_INTERVAL", "must be between 60 and 86400 seconds")

        request_timeout = _number_env(environ, "REQUEST_TIMEOUT", 30.0, float)
        if not validate_timeout(request_timeout):
            raise ConfigError("REQUEST_TIMEOUT", "must be between 0 and 300 seconds")

        shutdown_timeout = _number_env(environ, "SHUTDOWN_TIMEOUT", 30.0, float)
        if not validate_timeout(shutdown_timeout):
            raise ConfigError("SHUTDOWN_TIMEOUT", "must be between 0 and 300 seconds")

        stale_after = _number_env(environ, "STALE_AFTER", None, int)
        if stale_after is not None and stale_after <= 0:
            raise ConfigError("STALE_AFTER", "must be positive")

        return cls(
            sensor_id=sensor_id,
            api_key=api_key,
            api_url=api_url,
            refresh_interval=refresh_interval,
            request_timeout=request_timeout,
            shutdown_timeout=shutdown_timeout,
            stale_after=stale_after,
        )


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    STARTUP:
        1. Load config (fails fast if SENSOR_ID / API_KEY are missing)
        2. Create the PurpleAir service, the cache and the refresh cycle
        3. Inject cache + refresh cycle into the router
        4. Start the scheduler (startup refresh + hourly refresh)

    SHUTDOWN:
        1. Stop the scheduler
        2. Give a running refresh a moment to finish
        3. Close the HTTP client
    """
    # ========== STARTUP ==========
    config = Config.from_env()

    print("=" * 60)
    print("PURPLEAIR AQI SERVER - Starting Backend")
    print("=" * 60)

    purple_air_service = PurpleAirService(
        base_url=config.api_url,
        request_timeout=config.request_timeout,
    )
    cache = AqiCache()
    refresh = RefreshCycle(
        service=purple_air_service,
        cache=cache,
        sensor_id=config.sensor_id,
        api_key=config.api_key,
        interval_seconds=config.refresh_interval,
        stale_after=timedelta(seconds=config.stale_after),
        shutdown_timeout=config.shutdown_timeout,
    )

    # Inject into routers
    set_aqi_cache(cache)
    set_refresh_cycle(refresh)

    refresh.start()

    print(f"Sensor: {config.sensor_id}")
    print(f"   Refresh interval: {config.refresh_interval} seconds")
    print(f"   PurpleAir API: {config.api_url}")
    print(f"   Next scheduled refresh: {refresh.next_run_time}")
    print("API Documentation: /docs")
    print("=" * 60)

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    print()
    print("Shutting down...")
    await refresh.shutdown()
    set_aqi_cache(None)
    set_refresh_cycle(None)
    print("Shutdown complete")


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="PurpleAir AQI Server",
    description="""
## Overview

Serves the US EPA Air Quality Index for one PurpleAir sensor, computed from
its 24 hour PM2.5 average.

## How It Works

1. **On startup** - fetch the sensor's PM2.5 and compute the AQI
2. **Every hour, on the hour** - do it again
3. **GET /aqi** - returns the latest value instantly (`-1` until the first refresh succeeds)

If PurpleAir is unreachable, the last good AQI keeps being served.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(aqi_router)


# =============================================================================
# ROOT ENDPOINTS
# =============================================================================

@app.get(
    "/",
    summary="API Information",
    description="Get basic API information and available endpoints."
)
async def root():
    """Root endpoint with API overview."""
    return {
        "name": "PurpleAir AQI Server",
        "version": "1.0.0",
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json"
        },
        "endpoints": {
            "aqi": "GET /aqi",
            "aqi_status": "GET /aqi/status",
            "health": "GET /health"
        }
    }


@app.get(
    "/health",
    summary="Health Check",
    description="Check if the backend is running and whether the AQI is fresh."
)
async def health(refresh = Depends(get_refresh_cycle)):
    """Health check endpoint."""
    stale = refresh.is_stale()
    return {
        "status": "degraded" if stale else "healthy",
        "stale": stale,
        "consecutive_failures": refresh.consecutive_failures,
        "refresh_interval": refresh.interval_seconds,
    }
