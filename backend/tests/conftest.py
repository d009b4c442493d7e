"""
Pytest configuration for AQI server tests.

Provides shared fixtures: a fake PurpleAir service for refresh cycle tests,
a helper for building PurpleAir JSON bodies, and router wiring cleanup.
"""

import asyncio

import pytest

from aqi_server.models import SensorReading
from aqi_server.routers import set_aqi_cache, set_refresh_cycle
from aqi_server.services import AqiCache


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def purple_air_body(pm25=12.0, sensor_index="123456", time_stamp="1718035200"):
    """A PurpleAir /v1/sensors/{id} response body."""
    return {
        "api_version": "V1.0.11-0.0.58",
        "time_stamp": 1718035260,
        "data_time_stamp": 1718035200,
        "sensor": {
            "sensor_index": sensor_index,
            "stats": {
                "pm2.5_24hour": pm25,
                "time_stamp": time_stamp,
            },
        },
    }


class FakePurpleAirService:
    """
    Stands in for PurpleAirService in refresh cycle tests.

    results is consumed in order: a float becomes a reading with that PM2.5,
    an exception is raised. With gated=True every fetch waits for release().
    """

    def __init__(self, *results, gated=False):
        self.results = list(results)
        self.calls = 0
        self.closed = False
        self.entered = asyncio.Event()
        self._gate = asyncio.Event()
        if not gated:
            self._gate.set()

    def release(self):
        self._gate.set()

    async def fetch(self, sensor_id, api_key):
        self.calls += 1
        self.entered.set()
        await self._gate.wait()

        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return SensorReading(
            sensor_id=sensor_id,
            pm25_24hr_average=result,
            timestamp="1718035200",
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def cache():
    """Fixture providing a fresh AqiCache."""
    return AqiCache()


@pytest.fixture(autouse=True)
def reset_router_wiring():
    """Make sure no test sees another test's cache or refresh cycle."""
    yield
    set_aqi_cache(None)
    set_refresh_cycle(None)
