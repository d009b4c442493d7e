"""
Utility modules for the AQI server.
"""

from aqi_server.utils.validation import (
    validate_sensor_id,
    validate_api_key,
    validate_refresh_interval,
    validate_timeout,
    validate_base_url,
)

__all__ = [
    "validate_sensor_id",
    "validate_api_key",
    "validate_refresh_interval",
    "validate_timeout",
    "validate_base_url",
]
