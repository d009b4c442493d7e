"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from aqi_server.models import SensorReading, AqiResponse
"""

from .aqi import (
    # The "no data yet" marker
    NO_DATA,

    # States and outcomes of the refresh cycle
    CycleState,
    RefreshOutcome,
    RefreshTrigger,

    # Internal data
    SensorReading,
    Breakpoint,
    AqiConversion,
    AqiSnapshot,

    # What we send back
    AqiResponse,
    AqiStatusResponse,
)

__all__ = [
    "NO_DATA",
    "CycleState",
    "RefreshOutcome",
    "RefreshTrigger",
    "SensorReading",
    "Breakpoint",
    "AqiConversion",
    "AqiSnapshot",
    "AqiResponse",
    "AqiStatusResponse",
]
