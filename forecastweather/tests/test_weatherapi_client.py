"""Tests for the WeatherAPI.com connector."""

from __future__ import annotations

import re

import aiohttp
import pytest
from aioresponses import aioresponses

from forecastweather.connectors.weatherapi_client import WeatherApiClient, WeatherApiError
from forecastweather.tests.payloads import SEARCH_RESPONSE, current_response, forecast_response

CURRENT_URL = re.compile(r"https://api\.weatherapi\.com/v1/current\.json\?.*")
FORECAST_URL = re.compile(r"https://api\.weatherapi\.com/v1/forecast\.json\?.*")
SEARCH_URL = re.compile(r"https://api\.weatherapi\.com/v1/search\.json\?.*")


@pytest.fixture
async def client():
    c = WeatherApiClient(api_key="test-key")
    yield c
    await c.close()


def _sent_params(m: aioresponses) -> dict[str, str]:
    """Query parameters of the only request recorded by aioresponses."""
    ((_, url),) = m.requests.keys()
    return dict(url.query)


class TestCurrentWeather:
    async def test_by_name(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, payload=current_response())
            place = await client.get_current_weather("London")
            params = _sent_params(m)

        assert place.name == "London"
        assert place.temperature == 14.0
        assert params["key"] == "test-key"
        assert params["q"] == "London"
        assert params["aqi"] == "yes"

    async def test_by_coordinates(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, payload=current_response())
            place = await client.get_current_weather_by_coordinates(51.52, -0.11)
            params = _sent_params(m)

        assert place.name == "London"
        assert params["q"] == "51.52,-0.11"

    async def test_api_error_message(self, client: WeatherApiClient) -> None:
        body = {"error": {"code": 1006, "message": "No matching location found."}}
        with aioresponses() as m:
            m.get(CURRENT_URL, status=400, payload=body)
            with pytest.raises(WeatherApiError, match="400: No matching location found."):
                await client.get_current_weather("Atlantis")

    async def test_non_json_error_body(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, status=502, body="Bad Gateway")
            with pytest.raises(WeatherApiError, match="502: Bad Gateway"):
                await client.get_current_weather("London")

    async def test_connection_error(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, exception=aiohttp.ClientConnectionError("reset by peer"))
            with pytest.raises(WeatherApiError, match="connection error"):
                await client.get_current_weather("London")

    async def test_timeout(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, exception=TimeoutError())
            with pytest.raises(WeatherApiError, match="timed out"):
                await client.get_current_weather("London")

    async def test_malformed_body(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, payload={"location": {"name": "London"}})
            with pytest.raises(WeatherApiError, match="Unexpected WeatherAPI response"):
                await client.get_current_weather("London")

    async def test_single_attempt(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(CURRENT_URL, status=500, body="oops")
            m.get(CURRENT_URL, payload=current_response())
            with pytest.raises(WeatherApiError):
                await client.get_current_weather("London")
            # The queued success is still there for the next call
            place = await client.get_current_weather("London")

        assert place.name == "London"


class TestForecast:
    async def test_forecast(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(FORECAST_URL, payload=forecast_response())
            place, forecast = await client.get_forecast("London", days=7)
            params = _sent_params(m)

        assert params["days"] == "7"
        assert params["alerts"] == "no"
        assert place.max_temperature == 16.4
        assert forecast.place_name == "London"
        assert len(forecast.hourly) == 12
        assert len(forecast.daily) == 2

    async def test_hourly_limit_is_configurable(self) -> None:
        client = WeatherApiClient(api_key="k", hourly_limit=4)
        try:
            with aioresponses() as m:
                m.get(FORECAST_URL, payload=forecast_response())
                _, forecast = await client.get_forecast("London")
        finally:
            await client.close()

        assert len(forecast.hourly) == 4

    async def test_forecast_error(self, client: WeatherApiClient) -> None:
        body = {"error": {"code": 2008, "message": "API key has been disabled."}}
        with aioresponses() as m:
            m.get(FORECAST_URL, status=403, payload=body)
            with pytest.raises(WeatherApiError, match="403: API key has been disabled."):
                await client.get_forecast("London")


class TestSearch:
    async def test_search(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(SEARCH_URL, payload=SEARCH_RESPONSE)
            results = await client.search_places("lond")
            params = _sent_params(m)

        assert params["q"] == "lond"
        assert [(r.name, r.country) for r in results] == [
            ("London", "United Kingdom"),
            ("London", "Canada"),
        ]

    async def test_empty_search(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(SEARCH_URL, payload=[])
            assert await client.search_places("zzzz") == []

    async def test_unexpected_shape(self, client: WeatherApiClient) -> None:
        with aioresponses() as m:
            m.get(SEARCH_URL, payload={"error": {"message": "weird"}})
            with pytest.raises(WeatherApiError, match="Unexpected WeatherAPI search response"):
                await client.search_places("lond")


class TestSessionLifecycle:
    async def test_external_session_is_not_closed(self) -> None:
        session = aiohttp.ClientSession()
        client = WeatherApiClient(api_key="k", session=session)
        await client.close()

        assert not session.closed
        await session.close()

    async def test_close_without_requests(self) -> None:
        client = WeatherApiClient(api_key="k")
        await client.close()
