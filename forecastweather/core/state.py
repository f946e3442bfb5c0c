"""Application state and its observable holder."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict

from forecastweather.connectors.weather_models import (
    FavoritePlace,
    Forecast,
    PlaceSearchResult,
    PlaceWeather,
)


class ApplicationState(BaseModel):
    """Everything the presentation layer renders. Immutable; updates copy."""

    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    current_place: PlaceWeather | None = None
    forecast: Forecast | None = None
    error_message: str | None = None

    is_location_permission_granted: bool = False
    is_location_enabled: bool = False
    is_current_from_gps: bool = False
    gps_place: PlaceWeather | None = None

    favorites: list[FavoritePlace] = []
    is_current_place_favorite: bool = False

    search_query: str = ""
    search_results: list[PlaceSearchResult] = []
    is_searching: bool = False

    @property
    def is_location_available(self) -> bool:
        return self.is_location_permission_granted and self.is_location_enabled


class StateStream:
    """Holds the current ApplicationState and fans every change out to subscribers.

    Each subscriber receives the current value on subscribe, then every
    subsequent state in order.
    """

    def __init__(self, initial: ApplicationState | None = None) -> None:
        self._value = initial if initial is not None else ApplicationState()
        self._subscribers: set[asyncio.Queue[ApplicationState]] = set()

    @property
    def value(self) -> ApplicationState:
        return self._value

    def update(self, **changes: Any) -> ApplicationState:
        """Replace the state with a copy carrying ``changes`` and notify subscribers."""
        self._value = self._value.model_copy(update=changes)
        for queue in self._subscribers:
            queue.put_nowait(self._value)
        return self._value

    async def subscribe(self) -> AsyncIterator[ApplicationState]:
        queue: asyncio.Queue[ApplicationState] = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            yield self._value
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)
