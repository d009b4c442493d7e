"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place.
"""

from .aqi import router as aqi_router, set_aqi_cache, set_refresh_cycle

__all__ = [
    "aqi_router",
    "set_aqi_cache",
    "set_refresh_cycle",
]
