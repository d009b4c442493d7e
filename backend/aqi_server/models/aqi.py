"""
AQI Models
==========
Pydantic models for readings, breakpoints and API responses.

This module defines all data structures used throughout the application:
- Internal models: the parsed PurpleAir reading, breakpoint table entries,
  conversion results and cache snapshots
- Response models: What the backend returns to callers of /aqi

Author: AQI Server Team
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum


# Stored in the cache until the first refresh succeeds.
# 0 is a real AQI ("perfectly clean air"), so it can't double as "no data".
NO_DATA = -1


# =============================================================================
# ENUMS
# =============================================================================

class CycleState(str, Enum):
    """
    What the refresh cycle is doing right now.

    State Flow:
    - IDLE: Waiting for the next trigger
    - RUNNING: Fetching + converting (only one at a time!)
    """
    IDLE = "idle"
    RUNNING = "running"


class RefreshOutcome(str, Enum):
    """Result of one trigger of the refresh cycle."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"  # another cycle was still in flight


class RefreshTrigger(str, Enum):
    """Who kicked off a refresh cycle."""
    STARTUP = "startup"
    SCHEDULED = "scheduled"


# =============================================================================
# INTERNAL MODELS
# =============================================================================

class SensorReading(BaseModel):
    """
    One parsed reading from the PurpleAir API.

    Data Source:
        HTTP GET https://api.purpleair.com/v1/sensors/<sensor_id>?fields=pm2.5_24hour

    Immutable once parsed.
    """
    model_config = ConfigDict(frozen=True)

    sensor_id: str = Field(..., description="PurpleAir sensor index")
    pm25_24hr_average: float = Field(..., description="24 hour PM2.5 average µg/m³")
    timestamp: str = Field(..., description="Timestamp of the data, as sent by PurpleAir")


class Breakpoint(BaseModel):
    """
    One row of the EPA breakpoint table.

    Concentrations between pm_low and pm_high (inclusive) map linearly onto
    AQI values between aqi_low and aqi_high.
    """
    model_config = ConfigDict(frozen=True)

    pm_low: float
    pm_high: float
    aqi_low: int
    aqi_high: int


class AqiConversion(BaseModel):
    """
    Full result of converting a PM2.5 value.

    saturated is True when the concentration is above the top of the
    table, so the AQI can be larger than 500.
    """
    model_config = ConfigDict(frozen=True)

    aqi: int
    pm25: float = Field(..., description="Input after rounding to one decimal")
    saturated: bool = False


class AqiSnapshot(BaseModel):
    """Consistent copy of everything the cache holds."""
    model_config = ConfigDict(frozen=True)

    aqi: int = NO_DATA
    updated_at: Optional[datetime] = None
    source_timestamp: Optional[str] = None

    @property
    def ready(self) -> bool:
        """Has any refresh cycle succeeded yet?"""
        return self.aqi != NO_DATA


# =============================================================================
# RESPONSE MODELS - What we send back
# =============================================================================

class AqiResponse(BaseModel):
    """
    Response for GET /aqi.

    Example:
        {"aqi": 56}

    aqi is -1 until the first refresh succeeds.
    """
    aqi: int = Field(..., description="Latest AQI, or -1 when no data yet", examples=[56, -1])


class AqiStatusResponse(BaseModel):
    """
    Response for GET /aqi/status.

    Same value as /aqi plus everything you need to tell whether it is fresh.
    """
    aqi: int = Field(..., description="Latest AQI, or -1 when no data yet")
    ready: bool = Field(..., description="False until the first refresh succeeds")
    stale: bool = Field(..., description="True when the value is older than STALE_AFTER")
    updated_at: Optional[datetime] = Field(None, description="When the cache was last written")
    source_timestamp: Optional[str] = Field(None, description="Timestamp PurpleAir gave the reading")
    state: CycleState = Field(..., description="Is a refresh running right now?")
    consecutive_failures: int = Field(0, description="Failed cycles since the last success")
    last_error: Optional[str] = Field(None, description="Message of the most recent failure")
    last_success_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = Field(None, description="Next scheduled refresh")
