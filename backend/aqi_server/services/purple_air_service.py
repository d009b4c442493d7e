"""
Purple Air Sensor Service
=========================

This is the brains for talking to the PurpleAir cloud API.

WHAT THIS DOES:
--------------
1. Asks PurpleAir for ONE sensor's 24 hour PM2.5 average
2. Checks the response actually has it
3. Hands back a clean SensorReading

HOW PURPLE AIR WORKS:
--------------------
Every PurpleAir sensor has an index (like "123456"). With a read API key
you can get its data from:

    GET https://api.purpleair.com/v1/sensors/123456?fields=pm2.5_24hour
    X-API-Key: <your read key>

The key goes in a header, NOT in the URL, so it never ends up in access logs.

THE DATA FLOW:
-------------
    [api.purpleair.com]
            |
            | GET /v1/sensors/{id}?fields=pm2.5_24hour
            v
    [fetch_sensor_data() -> raw JSON]
            |
            | parse_sensor_response()
            v
    [SensorReading]

This service never retries. If something goes wrong it raises a FetchError
and the refresh cycle decides what to do about it.

Author: AQI Server Team
"""

import httpx
import logging
from datetime import datetime, timezone
from typing import Optional

from aqi_server.exceptions import (
    FetchHttpStatusError,
    FetchNetworkError,
    FetchParseError,
)
from aqi_server.models import SensorReading

logger = logging.getLogger(__name__)


# =============================================================================
# THE MAIN SERVICE CLASS
# =============================================================================

class PurpleAirService:
    """
    This class handles everything for the PurpleAir API.

    HOW TO USE:
    ----------
    # Create the service (done automatically at startup)
    service = PurpleAirService()

    # Fetch a reading
    try:
        reading = await service.fetch(sensor_id="123456", api_key="your-read-key")
        print(reading.pm25_24hr_average)
    except FetchError as e:
        print("Something went wrong:", e)

    # Clean up
    await service.close()
    """

    DEFAULT_BASE_URL = "https://api.purpleair.com/v1"

    # The only field we ask PurpleAir for
    PM25_FIELD = "pm2.5_24hour"

    # How much of an error body we keep on FetchHttpStatusError
    ERROR_SNIPPET_LENGTH = 80

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        request_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Set up the service.

        Args:
            base_url: PurpleAir API root. Default is the public v1 API.
            request_timeout: How long to wait for PurpleAir (seconds).
                            Default is 30 seconds.
            transport: Optional httpx transport (tests plug in a fake here)
        """
        self.base_url = base_url.rstrip("/")

        # One client for the life of the app so connections get reused
        self.http_client = httpx.AsyncClient(timeout=request_timeout, transport=transport)

    async def fetch_sensor_data(self, sensor_id: str, api_key: str) -> dict:
        """
        Get the raw JSON for one sensor.

        Args:
            sensor_id: PurpleAir sensor index (like "123456")
            api_key: PurpleAir read key

        Returns:
            The decoded JSON body, e.g.
            {
                "sensor": {
                    "sensor_index": "123456",
                    "stats": {"pm2.5_24hour": 12.0, "time_stamp": "1718035200"}
                }
            }

        Raises:
            FetchNetworkError: timeout, DNS failure, connection refused/reset
            FetchHttpStatusError: PurpleAir answered with a non-2xx status
            FetchParseError: the body isn't JSON or could not be decoded
        """
        url = f"{self.base_url}/sensors/{sensor_id}"

        try:
            response = await self.http_client.get(
                url,
                params={"fields": self.PM25_FIELD},
                headers={"X-API-Key": api_key},
            )
        except httpx.DecodingError as e:
            # Corrupt gzip/deflate body: we got an answer, just not a readable one
            raise FetchParseError(f"body could not be decoded ({e})") from e
        except httpx.TransportError as e:
            raise FetchNetworkError(e) from e

        if not response.is_success:
            # The log gets up to 500 chars, the error (shown on /aqi/status) a short snippet
            logger.warning(
                f"[sensor {sensor_id}] PurpleAir returned HTTP {response.status_code}: {response.text[:500]}"
            )
            raise FetchHttpStatusError(response.status_code, response.text[:self.ERROR_SNIPPET_LENGTH])

        logger.debug(f"[sensor {sensor_id}] PurpleAir response: {response.text[:500]}")

        try:
            return response.json()
        except ValueError as e:
            raise FetchParseError(f"body is not valid JSON ({e})") from e

    def parse_sensor_response(self, raw_data: dict, sensor_id: str) -> SensorReading:
        """
        Take the raw JSON and pull out the bits we care about.

        Args:
            raw_data: The JSON from fetch_sensor_data()
            sensor_id: The sensor we asked for (used if the body doesn't say)

        Returns:
            A SensorReading

        Raises:
            FetchParseError: if sensor.stats["pm2.5_24hour"] is missing or not a number
        """
        try:
            sensor = raw_data["sensor"]
            stats = sensor["stats"]
            pm25 = stats[self.PM25_FIELD]
        except KeyError as e:
            raise FetchParseError(f"missing field {e}") from e
        except TypeError as e:
            raise FetchParseError(f"unexpected response shape ({e})") from e

        # bool is an int in Python, but True is not a concentration
        if isinstance(pm25, bool) or not isinstance(pm25, (int, float)):
            raise FetchParseError(f"{self.PM25_FIELD} is not a number: {pm25!r}")

        # PurpleAir sends the stats timestamp; the top-level data_time_stamp
        # is the fallback. If neither is there, use the current time.
        timestamp = stats.get("time_stamp")
        if timestamp is None:
            timestamp = raw_data.get("data_time_stamp")
        if timestamp is None:
            timestamp = datetime.now(timezone.utc).isoformat()

        return SensorReading(
            sensor_id=str(sensor.get("sensor_index", sensor_id)),
            pm25_24hr_average=float(pm25),
            timestamp=str(timestamp),
        )

    async def fetch(self, sensor_id: str, api_key: str) -> SensorReading:
        """
        THE MAIN FUNCTION - fetch and parse in one call.

        This is what the refresh cycle calls every time it runs.

        Raises:
            FetchError (one of its subclasses) if anything goes wrong
        """
        raw_data = await self.fetch_sensor_data(sensor_id, api_key)
        return self.parse_sensor_response(raw_data, sensor_id)

    async def close(self):
        """
        Clean up when we're done.

        Called when the server shuts down.
        """
        await self.http_client.aclose()
