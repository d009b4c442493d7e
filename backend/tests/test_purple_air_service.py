"""
Tests for PurpleAirService.

PurpleAir is faked with httpx.MockTransport, so no network is needed.

Tests cover:
- The request we send: URL, fields parameter, API key header
- Successful parsing, including numeric ids/timestamps
- Error scenarios: HTTP status, network failures, bad JSON, corrupt compressed bodies, missing fields
"""

import logging

import httpx
import pytest

from aqi_server.exceptions import (
    FetchError,
    FetchHttpStatusError,
    FetchNetworkError,
    FetchParseError,
)
from aqi_server.services import PurpleAirService

from conftest import purple_air_body


def make_service(handler):
    return PurpleAirService(
        base_url="https://api.purpleair.test/v1",
        request_timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


class TestPurpleAirService:
    """Test suite for PurpleAirService."""

    # ==================== The Request ====================

    async def test_request_shape(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=purple_air_body())

        service = make_service(handler)
        try:
            await service.fetch("123456", "secret-key")
        finally:
            await service.close()

        request = seen[0]
        assert request.method == "GET"
        assert request.url.host == "api.purpleair.test"
        assert request.url.path == "/v1/sensors/123456"
        assert request.url.params["fields"] == "pm2.5_24hour"
        assert request.headers["X-API-Key"] == "secret-key"

    async def test_api_key_never_in_url(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=purple_air_body())

        service = make_service(handler)
        try:
            await service.fetch("123456", "secret-key")
        finally:
            await service.close()

        assert "secret-key" not in str(seen[0].url)

    # ==================== Success ====================

    async def test_parses_reading(self):
        service = make_service(lambda request: httpx.Response(200, json=purple_air_body(pm25=12.0)))
        try:
            reading = await service.fetch("123456", "key")
        finally:
            await service.close()

        assert reading.sensor_id == "123456"
        assert reading.pm25_24hr_average == 12.0
        assert reading.timestamp == "1718035200"

    def test_numeric_index_and_timestamp_become_strings(self):
        service = PurpleAirService()
        reading = service.parse_sensor_response(
            purple_air_body(pm25=7, sensor_index=123456, time_stamp=1718035200),
            "123456",
        )
        assert reading.sensor_id == "123456"
        assert reading.timestamp == "1718035200"
        assert reading.pm25_24hr_average == 7.0

    def test_falls_back_to_data_time_stamp(self):
        body = purple_air_body()
        del body["sensor"]["stats"]["time_stamp"]

        reading = PurpleAirService().parse_sensor_response(body, "123456")

        assert reading.timestamp == "1718035200"

    def test_falls_back_to_requested_sensor_id(self):
        body = purple_air_body()
        del body["sensor"]["sensor_index"]

        reading = PurpleAirService().parse_sensor_response(body, "999")

        assert reading.sensor_id == "999"

    def test_reading_is_immutable(self):
        reading = PurpleAirService().parse_sensor_response(purple_air_body(), "123456")
        with pytest.raises(Exception):
            reading.pm25_24hr_average = 1.0

    # ==================== HTTP Status Errors ====================

    @pytest.mark.parametrize("status", [400, 403, 404, 429, 500, 503])
    async def test_non_success_status(self, status):
        service = make_service(lambda request: httpx.Response(status, text="nope"))
        try:
            with pytest.raises(FetchHttpStatusError) as exc_info:
                await service.fetch("123456", "key")
        finally:
            await service.close()

        assert exc_info.value.status_code == status
        assert exc_info.value.kind == "http_status"

    async def test_error_body_is_cut_to_a_snippet(self, caplog):
        body = "x" * 70 + "SECRET-TAIL" + "y" * 400
        service = make_service(lambda request: httpx.Response(502, text=body))
        try:
            with caplog.at_level(logging.WARNING):
                with pytest.raises(FetchHttpStatusError) as exc_info:
                    await service.fetch("123456", "key")
        finally:
            await service.close()

        assert len(exc_info.value.body) == PurpleAirService.ERROR_SNIPPET_LENGTH
        assert "SECRET-TAIL" not in str(exc_info.value)
        # the log still has the longer version
        assert "SECRET-TAIL" in caplog.text

    # ==================== Network Errors ====================

    @pytest.mark.parametrize(
        "error_class",
        [httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout, httpx.RemoteProtocolError],
    )
    async def test_transport_failure(self, error_class):
        def handler(request):
            raise error_class("boom", request=request)

        service = make_service(handler)
        try:
            with pytest.raises(FetchNetworkError) as exc_info:
                await service.fetch("123456", "key")
        finally:
            await service.close()

        assert isinstance(exc_info.value.cause, error_class)

    # ==================== Parse Errors ====================

    async def test_corrupt_compressed_body(self):
        def handler(request):
            return httpx.Response(
                200,
                stream=httpx.ByteStream(b"not gzip"),
                headers={"Content-Encoding": "gzip"},
            )

        service = make_service(handler)
        try:
            with pytest.raises(FetchParseError) as exc_info:
                await service.fetch("123456", "key")
        finally:
            await service.close()

        assert exc_info.value.kind == "parse"
        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)

    async def test_body_not_json(self):
        service = make_service(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        try:
            with pytest.raises(FetchParseError):
                await service.fetch("123456", "key")
        finally:
            await service.close()

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"sensor": {}},
            {"sensor": {"stats": {}}},
            {"sensor": {"stats": {"pm2.5": 3.0}}},
            {"sensor": {"stats": None}},
            {"sensor": "123456"},
            [],
            "just a string",
        ],
    )
    def test_missing_nested_field(self, body):
        with pytest.raises(FetchParseError):
            PurpleAirService().parse_sensor_response(body, "123456")

    @pytest.mark.parametrize("value", ["12.0", None, True, [12.0]])
    def test_pm25_not_a_number(self, value):
        with pytest.raises(FetchParseError):
            PurpleAirService().parse_sensor_response(purple_air_body(pm25=value), "123456")

    async def test_all_errors_are_fetch_errors(self):
        service = make_service(lambda request: httpx.Response(200, json={"sensor": {}}))
        try:
            with pytest.raises(FetchError):
                await service.fetch("123456", "key")
        finally:
            await service.close()
