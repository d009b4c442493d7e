"""
AQI API Router
==============

The read side of the app. Every request here just looks at the cache -
no PurpleAir calls, ever. So even if PurpleAir is down or a refresh is
halfway through, these answer instantly.

ALL ENDPOINTS:
-------------
GET /aqi         - {"aqi": 56}  (-1 until the first refresh succeeds)
GET /aqi/status  - The same value plus freshness and refresh health

Author: AQI Server Team
"""

from fastapi import APIRouter, Depends, HTTPException

from aqi_server.models import AqiResponse, AqiStatusResponse


# Create the router - this groups our AQI endpoints together
router = APIRouter(prefix="/aqi", tags=["aqi"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================
# The lifespan handler hands us the cache and refresh cycle at startup

_aqi_cache = None
_refresh_cycle = None


def set_aqi_cache(cache):
    """Called when the app starts to give us the shared cache."""
    global _aqi_cache
    _aqi_cache = cache


def set_refresh_cycle(refresh):
    """Called when the app starts to give us the refresh cycle (for /status)."""
    global _refresh_cycle
    _refresh_cycle = refresh


def get_aqi_cache():
    """Get the cache for use in endpoints."""
    if _aqi_cache is None:
        raise HTTPException(status_code=503, detail="Server not fully started yet")
    return _aqi_cache


def get_refresh_cycle():
    """Get the refresh cycle for use in endpoints."""
    if _refresh_cycle is None:
        raise HTTPException(status_code=503, detail="Server not fully started yet")
    return _refresh_cycle


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=AqiResponse)
async def get_aqi(cache = Depends(get_aqi_cache)):
    """
    Get the latest AQI.

    Returns -1 if we haven't managed a single successful refresh yet.
    """
    return AqiResponse(aqi=cache.get())


@router.get("/status", response_model=AqiStatusResponse)
async def get_aqi_status(
    cache = Depends(get_aqi_cache),
    refresh = Depends(get_refresh_cycle),
):
    """
    Get the latest AQI plus how fresh it is.

    Use `ready` instead of checking for -1, and `stale` to find out whether
    refreshes have been failing for a while.
    """
    snapshot = cache.snapshot()
    return AqiStatusResponse(
        aqi=snapshot.aqi,
        ready=snapshot.ready,
        stale=refresh.is_stale(),
        updated_at=snapshot.updated_at,
        source_timestamp=snapshot.source_timestamp,
        state=refresh.state,
        consecutive_failures=refresh.consecutive_failures,
        last_error=refresh.last_error,
        last_success_at=refresh.last_success_at,
        next_run_at=refresh.next_run_time,
    )
