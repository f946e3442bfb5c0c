"""WeatherAPI.com connector: current conditions, forecasts and place search.

Uses api.weatherapi.com/v1 with an API key passed as the ``key`` query
parameter. One attempt per call; callers decide what to do with a failure.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import aiohttp
from pydantic import ValidationError

from forecastweather.connectors.weather_models import (
    DEFAULT_HOURLY_LIMIT,
    ApiSearchLocation,
    Forecast,
    PlaceSearchResult,
    PlaceWeather,
    WeatherResponse,
    to_forecast,
    to_place_weather,
    to_search_result,
)
from forecastweather.utils.logger import get_logger

logger = get_logger("weatherapi_client")

BASE_URL = "https://api.weatherapi.com/v1"


class WeatherApiError(Exception):
    """Error fetching or parsing data from WeatherAPI.com."""


class WeatherApiClient:
    """Async client for the WeatherAPI.com REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        session: aiohttp.ClientSession | None = None,
        timeout_seconds: int = 15,
        hourly_limit: int = DEFAULT_HOURLY_LIMIT,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout_seconds = timeout_seconds
        self._hourly_limit = hourly_limit

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self._timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _fetch(self, endpoint: str, params: dict[str, str]) -> Any:
        """GET an endpoint and return the decoded JSON body."""
        session = await self._get_session()
        url = f"{self._base_url}/{endpoint}"
        query = {"key": self._api_key, **params}

        try:
            async with session.get(url, params=query) as resp:
                if resp.status == 200:
                    return await resp.json()
                body = await resp.text()
                raise WeatherApiError(f"WeatherAPI error {resp.status}: {_error_message(body)}")
        except aiohttp.ClientError as e:
            logger.warning("weatherapi_connection_error", endpoint=endpoint, error=str(e))
            raise WeatherApiError(f"WeatherAPI connection error: {e}") from e
        except asyncio.TimeoutError as e:
            logger.warning("weatherapi_timeout", endpoint=endpoint)
            raise WeatherApiError("WeatherAPI request timed out") from e

    async def _fetch_weather(self, endpoint: str, params: dict[str, str]) -> WeatherResponse:
        data = await self._fetch(endpoint, params)
        try:
            return WeatherResponse.model_validate(data)
        except ValidationError as e:
            raise WeatherApiError(
                f"Unexpected WeatherAPI response: {e.error_count()} invalid fields"
            ) from e

    async def get_current_weather(self, query: str) -> PlaceWeather:
        """Current conditions for a place name or a ``"lat,lon"`` string.

        Raises:
            WeatherApiError: If the request fails or the body does not parse.
        """
        logger.info("weatherapi_fetch_current", query=query)
        response = await self._fetch_weather("current.json", {"q": query, "aqi": "yes"})
        place = to_place_weather(response)
        logger.info("weatherapi_current_fetched", place=place.name, temp_c=place.temperature)
        return place

    async def get_current_weather_by_coordinates(
        self, latitude: float, longitude: float
    ) -> PlaceWeather:
        return await self.get_current_weather(f"{latitude},{longitude}")

    async def get_forecast(self, query: str, days: int = 7) -> tuple[PlaceWeather, Forecast]:
        """Multi-day forecast plus the current conditions it was issued with.

        Raises:
            WeatherApiError: If the request fails or the body does not parse.
        """
        logger.info("weatherapi_fetch_forecast", query=query, days=days)
        response = await self._fetch_weather(
            "forecast.json",
            {"q": query, "days": str(days), "aqi": "yes", "alerts": "no"},
        )
        place = to_place_weather(response)
        forecast = to_forecast(response, hourly_limit=self._hourly_limit)
        logger.info(
            "weatherapi_forecast_fetched",
            place=place.name,
            days=len(forecast.daily),
            hours=len(forecast.hourly),
        )
        return place, forecast

    async def search_places(self, query: str) -> list[PlaceSearchResult]:
        """Autocomplete place search.

        Raises:
            WeatherApiError: If the request fails or the body does not parse.
        """
        data = await self._fetch("search.json", {"q": query})
        if not isinstance(data, list):
            raise WeatherApiError("Unexpected WeatherAPI search response")
        try:
            locations = [ApiSearchLocation.model_validate(item) for item in data]
        except ValidationError as e:
            raise WeatherApiError(
                f"Unexpected WeatherAPI search response: {e.error_count()} invalid fields"
            ) from e
        logger.debug("weatherapi_search_done", query=query, results=len(locations))
        return [to_search_result(loc) for loc in locations]


def _error_message(body: str) -> str:
    """Extract ``error.message`` from an API error body, else a truncated body."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return body[:200]
