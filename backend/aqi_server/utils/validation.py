"""
Input Validation Utilities
===========================

Validation functions for the settings we read at startup.

Author: AQI Server Team
"""

import re
from urllib.parse import urlparse


def validate_sensor_id(sensor_id: str) -> bool:
    """
    Validate a PurpleAir sensor index.

    Args:
        sensor_id: Sensor index string (e.g., "123456")

    Returns:
        True if it's all digits and a reasonable length, False otherwise
    """
    if not sensor_id:
        return False
    return bool(re.fullmatch(r'[0-9]{1,12}', sensor_id))


def validate_api_key(api_key: str) -> bool:
    """
    Validate a PurpleAir API key.

    Keys look like UUIDs, but we only insist on something header-safe.

    Args:
        api_key: API key string

    Returns:
        True if valid, False otherwise
    """
    if not api_key:
        return False
    return bool(re.fullmatch(r'[A-Za-z0-9_-]{1,128}', api_key))


def validate_refresh_interval(seconds: int) -> bool:
    """
    Validate the refresh interval (must be positive and reasonable).

    Args:
        seconds: Time between refreshes in seconds

    Returns:
        True if valid, False otherwise
    """
    return 60 <= seconds <= 86400  # 1 minute to 24 hours


def validate_timeout(seconds: float, max_seconds: float = 300.0) -> bool:
    """
    Validate a timeout value.

    Args:
        seconds: Timeout in seconds
        max_seconds: Largest timeout we accept

    Returns:
        True if valid, False otherwise
    """
    return 0 < seconds <= max_seconds


def validate_base_url(url: str) -> bool:
    """
    Validate an API base URL (http or https with a host).

    Args:
        url: URL string (e.g., "https://api.purpleair.com/v1")

    Returns:
        True if valid, False otherwise
    """
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
