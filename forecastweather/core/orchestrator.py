"""Weather state orchestrator: the single writer of ApplicationState.

Architecture:
- Intent methods (fetch_by_name, search_locations, toggle_favorite, ...) are
  plain synchronous calls that update state and schedule asyncio tasks
- Every completion re-validates relevance before touching state:
  request generation for current weather, place name for forecasts and
  favorite checks, search sequence for searches
- Search is debounced; a new query cancels the previous search task
- Background GPS refresh only ever writes ``gps_place`` and never surfaces errors
- No exception escapes a task; failures map to ``error_message``
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Coroutine
from typing import Any, Protocol

from forecastweather.connectors.location import LocationProvider, Position
from forecastweather.connectors.weather_models import (
    FavoritePlace,
    Forecast,
    PlaceSearchResult,
    PlaceWeather,
)
from forecastweather.core.state import ApplicationState, StateStream
from forecastweather.utils.logger import get_logger

logger = get_logger("orchestrator")

LOCATION_UNAVAILABLE = "could not obtain current location"


class WeatherClient(Protocol):
    async def get_current_weather(self, query: str) -> PlaceWeather: ...

    async def get_current_weather_by_coordinates(
        self, latitude: float, longitude: float
    ) -> PlaceWeather: ...

    async def get_forecast(self, query: str, days: int = 7) -> tuple[PlaceWeather, Forecast]: ...

    async def search_places(self, query: str) -> list[PlaceSearchResult]: ...


class FavoritesRepository(Protocol):
    async def upsert(self, favorite: FavoritePlace) -> None: ...

    async def delete(self, name: str) -> None: ...

    async def exists(self, name: str) -> bool: ...

    def observe_all(self) -> AsyncIterator[list[FavoritePlace]]: ...


class LastPlaceRepository(Protocol):
    async def get(self) -> str | None: ...

    async def set(self, name: str) -> None: ...


class WeatherOrchestrator:
    """Coordinates weather client, location provider and stores into one state.

    Lifecycle: ``__init__`` -> ``await start()`` -> intents ... -> ``await close()``.
    """

    MAX_WATCH_RESTARTS = 5

    def __init__(
        self,
        client: WeatherClient,
        location: LocationProvider,
        favorites: FavoritesRepository,
        last_place: LastPlaceRepository,
        search_debounce_s: float = 0.5,
        forecast_days: int = 7,
        watch_retry_s: float = 1.0,
    ) -> None:
        self._client = client
        self._location = location
        self._favorites = favorites
        self._last_place = last_place
        self._search_debounce_s = search_debounce_s
        self._forecast_days = forecast_days
        self._watch_retry_s = watch_retry_s

        self._state = StateStream()

        # One-shot tasks (fetches, forecast chains, checks, toggles, searches)
        self._tasks: set[asyncio.Task[None]] = set()
        self._favorites_task: asyncio.Task[None] | None = None
        self._search_task: asyncio.Task[None] | None = None

        self._fetch_generation = 0
        self._search_seq = 0
        # Bumped by every toggle; membership checks issued earlier are stale
        self._favorite_toggles = 0

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> ApplicationState:
        return self._state.value

    def observe_state(self) -> AsyncIterator[ApplicationState]:
        """Current state first, then every change."""
        return self._state.subscribe()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bootstrap: location availability, GPS refresh, last place, favorites."""
        state = self._state.update(
            is_location_permission_granted=self._location.has_permission(),
            is_location_enabled=self._location.is_enabled(),
        )
        logger.info(
            "orchestrator_starting",
            permission=state.is_location_permission_granted,
            location_enabled=state.is_location_enabled,
        )

        if state.is_location_available:
            self._spawn(self._refresh_gps_place(), name="gps_refresh")

        last_place = await self._read_last_place()
        if last_place:
            self.fetch_by_name(last_place)
        elif state.is_location_available:
            self.fetch_by_current_location()

        self._favorites_task = asyncio.create_task(
            self._watch_favorites(), name="favorites_watcher"
        )

    async def wait_until_idle(self) -> None:
        """Wait for all one-shot tasks, including those they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel every task, including the favorites watcher."""
        tasks = list(self._tasks)
        if self._favorites_task is not None:
            tasks.append(self._favorites_task)
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        logger.info("orchestrator_stopped")

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def fetch_by_name(self, name: str) -> None:
        generation = self._begin_fetch()
        logger.info("fetch_by_name", place=name, generation=generation)
        self._spawn(self._fetch_by_name(name, generation), name="fetch_by_name")

    def fetch_by_current_location(self) -> None:
        generation = self._begin_fetch()
        logger.info("fetch_by_location", generation=generation)
        self._spawn(self._fetch_by_location(generation), name="fetch_by_location")

    def search_locations(self, query: str) -> None:
        self._state.update(search_query=query)

        self._search_seq += 1
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()
        self._search_task = None

        if not query.strip():
            self._state.update(search_results=[], is_searching=False)
            return

        self._state.update(is_searching=True)
        self._search_task = self._spawn(self._search(query, self._search_seq), name="search")

    def select_search_result(self, result: PlaceSearchResult) -> None:
        self.fetch_by_name(result.name)
        self.clear_search()

    def clear_search(self) -> None:
        self._state.update(search_query="", search_results=[])

    def toggle_favorite(self) -> None:
        """Add or remove the current place; the flag flips without waiting for the store."""
        state = self._state.value
        place = state.current_place
        if place is None:
            return

        was_favorite = state.is_current_place_favorite
        if was_favorite:
            call = self._favorites.delete(place.name)
        else:
            call = self._favorites.upsert(
                FavoritePlace(
                    name=place.name,
                    region=place.region,
                    country=place.country,
                    latitude=place.latitude,
                    longitude=place.longitude,
                )
            )
        self._favorite_toggles += 1
        self._spawn(self._write_favorite(place.name, call), name="toggle_favorite")
        self._state.update(is_current_place_favorite=not was_favorite)
        logger.info("favorite_toggled", place=place.name, favorite=not was_favorite)

    # ------------------------------------------------------------------
    # Current weather
    # ------------------------------------------------------------------

    def _begin_fetch(self) -> int:
        self._fetch_generation += 1
        self._state.update(is_loading=True, error_message=None)
        return self._fetch_generation

    async def _fetch_by_name(self, name: str, generation: int) -> None:
        try:
            place = await self._client.get_current_weather(name)
        except Exception as e:
            self._fail_fetch(generation, f"Failed to get weather: {e}")
            return
        if generation != self._fetch_generation:
            logger.debug("stale_weather_dropped", place=place.name, generation=generation)
            return
        self._apply_place(place, from_gps=False)
        await self._after_place_loaded(place, generation)

    async def _fetch_by_location(self, generation: int) -> None:
        position = await self._current_position()
        if position is None:
            self._fail_fetch(generation, LOCATION_UNAVAILABLE)
            return
        try:
            place = await self._client.get_current_weather_by_coordinates(
                position.latitude, position.longitude
            )
        except Exception as e:
            self._fail_fetch(generation, f"Failed to get weather: {e}")
            return
        if generation != self._fetch_generation:
            logger.debug("stale_weather_dropped", place=place.name, generation=generation)
            return
        self._apply_place(place, from_gps=True)
        await self._after_place_loaded(place, generation)

    def _fail_fetch(self, generation: int, message: str) -> None:
        if generation != self._fetch_generation:
            logger.debug("stale_failure_dropped", generation=generation, error=message)
            return
        logger.warning("weather_fetch_failed", error=message)
        self._state.update(is_loading=False, error_message=message)

    def _apply_place(self, place: PlaceWeather, from_gps: bool) -> None:
        changes: dict[str, Any] = {"current_place": place, "is_current_from_gps": from_gps}
        if from_gps:
            changes["gps_place"] = place
        if not self._is_current(place.name):
            # Forecast and favorite flag belong to the previous place
            changes["forecast"] = None
            changes["is_current_place_favorite"] = False
        self._state.update(**changes)
        logger.info("weather_applied", place=place.name, from_gps=from_gps)

    async def _after_place_loaded(self, place: PlaceWeather, generation: int) -> None:
        self._spawn(self._persist_last_place(place.name), name="persist_last_place")
        self._spawn(
            self._check_favorite(place.name, self._favorite_toggles), name="check_favorite"
        )
        await self._load_forecast(place, generation)

    async def _current_position(self) -> Position | None:
        try:
            return await self._location.get_current_position()
        except Exception as e:
            logger.info("location_unavailable", error=str(e))
            return None

    async def _refresh_gps_place(self) -> None:
        """Update ``gps_place`` only. Failures are swallowed."""
        try:
            position = await self._location.get_current_position()
            if position is None:
                logger.debug("gps_refresh_no_position")
                return
            place = await self._client.get_current_weather_by_coordinates(
                position.latitude, position.longitude
            )
        except Exception as e:
            logger.debug("gps_refresh_failed", error=str(e))
            return
        self._state.update(gps_place=place)
        logger.debug("gps_place_refreshed", place=place.name)

    # ------------------------------------------------------------------
    # Forecast chaining
    # ------------------------------------------------------------------

    async def _load_forecast(self, place: PlaceWeather, generation: int) -> None:
        """Apply the forecast if ``place`` is still shown.

        Only the newest fetch may end loading: an older forecast for the same
        place is kept, but a newer fetch is still in flight.
        """
        try:
            _, forecast = await self._client.get_forecast(place.name, self._forecast_days)
        except Exception as e:
            if not self._is_current(place.name) or generation != self._fetch_generation:
                logger.debug("stale_forecast_failure_dropped", place=place.name)
                return
            logger.warning("forecast_fetch_failed", place=place.name, error=str(e))
            self._state.update(is_loading=False, error_message=f"Failed to get forecast: {e}")
            return

        if not self._is_current(place.name):
            logger.debug("stale_forecast_dropped", place=place.name)
            return
        if generation != self._fetch_generation:
            self._state.update(forecast=forecast)
            return
        self._state.update(forecast=forecast, is_loading=False)

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    async def _check_favorite(self, name: str, toggles: int) -> None:
        """Read membership; dropped if a toggle happened after it was issued."""
        try:
            is_favorite = await self._favorites.exists(name)
        except Exception as e:
            logger.warning("favorite_check_failed", place=name, error=str(e))
            return
        if toggles != self._favorite_toggles:
            logger.debug("stale_favorite_check_dropped", place=name)
            return
        if self._is_current(name):
            self._state.update(is_current_place_favorite=is_favorite)

    async def _write_favorite(self, name: str, call: Coroutine[Any, Any, None]) -> None:
        try:
            await call
        except Exception as e:
            # Optimistic flag may now disagree with the store
            logger.warning("favorite_write_failed", place=name, error=str(e))
            await self._check_favorite(name, self._favorite_toggles)

    async def _watch_favorites(self) -> None:
        """Mirror the favorites listing into state.

        A failing subscription is restarted with exponential backoff, up to
        ``MAX_WATCH_RESTARTS`` times; after that ``favorites`` stops updating.
        """
        restarts = 0
        while True:
            try:
                async for favorites in self._favorites.observe_all():
                    self._state.update(favorites=favorites)
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                restarts += 1
                logger.error(
                    "favorites_watch_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    restart_count=restarts,
                )
                if restarts > self.MAX_WATCH_RESTARTS:
                    logger.error("favorites_watch_stopped", restart_count=restarts)
                    return
                await asyncio.sleep(min(60.0, self._watch_retry_s * 2 ** (restarts - 1)))

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def _search(self, query: str, seq: int) -> None:
        await asyncio.sleep(self._search_debounce_s)
        if seq != self._search_seq:
            return
        try:
            results = await self._client.search_places(query)
        except Exception as e:
            if seq != self._search_seq:
                return
            logger.warning("search_failed", query=query, error=str(e))
            self._state.update(is_searching=False, error_message=f"Search failed: {e}")
            return
        if seq != self._search_seq:
            return
        self._state.update(search_results=results, is_searching=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_last_place(self) -> str | None:
        try:
            return await self._last_place.get()
        except Exception as e:
            logger.warning("last_place_read_failed", error=str(e))
            return None

    async def _persist_last_place(self, name: str) -> None:
        try:
            await self._last_place.set(name)
        except Exception as e:
            logger.warning("last_place_save_failed", place=name, error=str(e))

    def _is_current(self, name: str) -> bool:
        current = self._state.value.current_place
        return current is not None and current.name == name

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("orchestrator_task_crashed", task=task.get_name(), error=str(exc))
