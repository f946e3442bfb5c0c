"""In-memory collaborators for orchestrator tests.

Each fake records its calls and can be held at a gate (``asyncio.Event``)
to force a particular completion order.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

from forecastweather.connectors.location import LocationPermissionError, Position
from forecastweather.connectors.weather_models import (
    DailyPoint,
    FavoritePlace,
    Forecast,
    HourlyPoint,
    PlaceSearchResult,
    PlaceWeather,
)
from forecastweather.connectors.weatherapi_client import WeatherApiError


def make_place(name: str, **overrides: object) -> PlaceWeather:
    fields: dict[str, object] = {
        "name": name,
        "region": f"{name} Region",
        "country": "Testland",
        "latitude": 10.5,
        "longitude": -20.25,
        "temperature": 21.0,
        "max_temperature": 25.0,
        "min_temperature": 15.0,
        "condition": "Sunny",
        "condition_icon": "//cdn.weatherapi.com/weather/64x64/day/113.png",
        "humidity": 40,
        "wind_speed": 12.0,
        "wind_direction": "NW",
        "uv": 5.0,
        "feels_like": 22.0,
        "air_quality_index": 2,
        "is_day": True,
        "local_time": "2026-10-19 14:05",
        "time_zone_id": "Europe/London",
    }
    fields.update(overrides)
    return PlaceWeather(**fields)  # type: ignore[arg-type]


def make_forecast(name: str) -> Forecast:
    return Forecast(
        place_name=name,
        time_zone_id="Europe/London",
        hourly=[
            HourlyPoint(
                time="15:00",
                temperature=20.0,
                max_temperature=25.0,
                min_temperature=15.0,
                condition="Sunny",
                condition_icon="",
                chance_of_rain=0,
                humidity=40,
                wind_speed=10.0,
                epoch_time=1_792_000_000,
            )
        ],
        daily=[
            DailyPoint(
                date="19/10",
                max_temperature=25.0,
                min_temperature=15.0,
                condition="Sunny",
                condition_icon="",
                chance_of_rain=10,
                sunrise="07:20 AM",
                sunset="06:01 PM",
                uv=4.0,
            )
        ],
    )


class FakeWeatherClient:
    def __init__(self) -> None:
        self.places: dict[str, PlaceWeather] = {}
        self.coords_place: PlaceWeather | None = None
        self.search_results: dict[str, list[PlaceSearchResult]] = {}
        self.errors: dict[str, Exception] = {}
        self.current_gates: dict[str, asyncio.Event] = {}
        self.forecast_gates: dict[str, asyncio.Event] = {}
        self.search_gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, str]] = []

    async def get_current_weather(self, query: str) -> PlaceWeather:
        self.calls.append(("current", query))
        if query in self.current_gates:
            await self.current_gates[query].wait()
        if "current" in self.errors:
            raise self.errors["current"]
        if query not in self.places:
            raise WeatherApiError("WeatherAPI error 400: No matching location found.")
        return self.places[query]

    async def get_current_weather_by_coordinates(
        self, latitude: float, longitude: float
    ) -> PlaceWeather:
        self.calls.append(("coords", f"{latitude},{longitude}"))
        if "coords" in self.errors:
            raise self.errors["coords"]
        if self.coords_place is None:
            raise WeatherApiError("WeatherAPI error 400: No matching location found.")
        return self.coords_place

    async def get_forecast(self, query: str, days: int = 7) -> tuple[PlaceWeather, Forecast]:
        self.calls.append(("forecast", query))
        if query in self.forecast_gates:
            await self.forecast_gates[query].wait()
        if "forecast" in self.errors:
            raise self.errors["forecast"]
        place = self.places.get(query) or self.coords_place or make_place(query)
        return place, make_forecast(query)

    async def search_places(self, query: str) -> list[PlaceSearchResult]:
        self.calls.append(("search", query))
        if query in self.search_gates:
            await self.search_gates[query].wait()
        if "search" in self.errors:
            raise self.errors["search"]
        return self.search_results.get(query, [])

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)


class FakeLocationProvider:
    def __init__(
        self,
        position: Position | None = None,
        permission: bool = True,
        enabled: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.position = position
        self.permission = permission
        self.enabled = enabled
        self.error = error

    def has_permission(self) -> bool:
        return self.permission

    def is_enabled(self) -> bool:
        return self.enabled

    async def get_current_position(self) -> Position | None:
        if self.error is not None:
            raise self.error
        if not self.permission:
            raise LocationPermissionError("Location permission not granted")
        return self.position


class FakeFavoritesStore:
    def __init__(self) -> None:
        self.rows: dict[str, FavoritePlace] = {}
        self.fail_writes = False
        # Membership is read before waiting, like a query that already ran
        self.exists_gate: asyncio.Event | None = None
        self.observe_failures = 0
        self._subscribers: set[asyncio.Queue[list[FavoritePlace]]] = set()

    def _listing(self) -> list[FavoritePlace]:
        return sorted(self.rows.values(), key=lambda f: f.created_at, reverse=True)

    def _publish(self) -> None:
        for queue in self._subscribers:
            queue.put_nowait(self._listing())

    async def upsert(self, favorite: FavoritePlace) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise RuntimeError("database is locked")
        self.rows[favorite.name] = favorite
        self._publish()

    async def delete(self, name: str) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise RuntimeError("database is locked")
        self.rows.pop(name, None)
        self._publish()

    async def exists(self, name: str) -> bool:
        found = name in self.rows
        if self.exists_gate is not None:
            await self.exists_gate.wait()
        return found

    async def observe_all(self) -> AsyncIterator[list[FavoritePlace]]:
        if self.observe_failures > 0:
            self.observe_failures -= 1
            raise RuntimeError("database is locked")
        queue: asyncio.Queue[list[FavoritePlace]] = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            yield self._listing()
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)


class FakeLastPlaceStore:
    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self.saved: list[str] = []

    async def get(self) -> str | None:
        return self.name

    async def set(self, name: str) -> None:
        self.name = name
        self.saved.append(name)


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)
