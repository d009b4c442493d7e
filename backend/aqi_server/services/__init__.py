"""
Services Package
================

These are the "workers" that do the actual work.

- PurpleAirService: Talks to the PurpleAir API
- aqi_converter: Turns PM2.5 into an AQI
- AqiCache: Holds the latest AQI
- RefreshCycle: The scheduler that ties them together
"""

from .purple_air_service import PurpleAirService
from .aqi_cache import AqiCache
from .aqi_converter import convert, convert_detailed
from .refresh_cycle import RefreshCycle, next_hour_boundary

__all__ = [
    "PurpleAirService",
    "AqiCache",
    "convert",
    "convert_detailed",
    "RefreshCycle",
    "next_hour_boundary",
]
