"""Exceptions raised by the AQI server."""

from typing import Optional


class AqiServerError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigError(AqiServerError):
    """Raised at startup when a required setting is missing or invalid.

    Attributes:
      param   -- The environment variable that failed validation
      message -- An explanation of the error.
    """

    def __init__(self, param: str, message: str) -> None:
        super().__init__(f"Invalid configuration for {param}: {message}")
        self.param = param
        self.message = message


# =============================================================================
# CONVERSION ERRORS
# =============================================================================

class ConversionError(AqiServerError):
    """Raised when a PM2.5 concentration cannot be turned into an AQI."""

    kind = "conversion"


class OutOfDomainError(ConversionError):
    """Raised for concentrations outside the breakpoint table's domain.

    Only negative (after rounding) and non-finite values land here. Values
    above the top of the table are NOT an error, they use the last entry.
    """

    def __init__(self, pm25: float) -> None:
        super().__init__(f"PM2.5 concentration out of domain: {pm25}")
        self.pm25 = pm25


# =============================================================================
# FETCH ERRORS
# =============================================================================

class FetchError(AqiServerError):
    """Raised when a reading could not be retrieved from PurpleAir."""

    kind = "fetch"


class FetchNetworkError(FetchError):
    """Transport failure: timeout, DNS, refused or reset connection."""

    kind = "network"

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Network error talking to PurpleAir: {cause!r}")
        self.cause = cause


class FetchHttpStatusError(FetchError):
    """PurpleAir answered with a non-success HTTP status.

    Attributes:
      status_code -- The HTTP status code returned by the server.
      body        -- The first part of the response body, if any.
    """

    kind = "http_status"

    def __init__(self, status_code: int, body: Optional[str] = None) -> None:
        message = f"PurpleAir API returned HTTP {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class FetchParseError(FetchError):
    """The response body was not JSON or lacked the expected fields."""

    kind = "parse"

    def __init__(self, cause: str) -> None:
        super().__init__(f"Could not parse PurpleAir response: {cause}")
        self.cause = cause
