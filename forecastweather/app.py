"""Composition root: builds collaborators from config and injects them.

The orchestrator is handed to the presentation layer explicitly; nothing is
looked up from module-level globals at runtime.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from forecastweather.config.settings import ForecastWeatherConfig, get_config
from forecastweather.connectors.location import (
    IPLocationProvider,
    LocationProvider,
    StaticLocationProvider,
)
from forecastweather.connectors.weatherapi_client import WeatherApiClient
from forecastweather.core.orchestrator import WeatherOrchestrator
from forecastweather.storage.favorites import FavoritesStore
from forecastweather.storage.last_place import LastPlaceStore
from forecastweather.utils.db import create_engine, init_db, make_session_factory
from forecastweather.utils.logger import get_logger

logger = get_logger("app")


@dataclass
class App:
    orchestrator: WeatherOrchestrator
    client: WeatherApiClient
    location: LocationProvider
    engine: AsyncEngine


def build_location_provider(config: ForecastWeatherConfig) -> LocationProvider:
    cfg = config.location
    if cfg.provider == "ip":
        return IPLocationProvider(
            url=cfg.ip_lookup_url,
            permission_granted=cfg.permission_granted,
            enabled=cfg.enabled,
        )
    return StaticLocationProvider(
        latitude=cfg.latitude,
        longitude=cfg.longitude,
        permission_granted=cfg.permission_granted,
        enabled=cfg.enabled,
    )


async def build_app(config: ForecastWeatherConfig | None = None) -> App:
    """Create the database schema and wire every component. Does not start it."""
    config = config or get_config()
    if not config.weather_api_key:
        logger.warning("weather_api_key_missing")

    engine = create_engine(config.database_url)
    await init_db(engine)
    session_factory = make_session_factory(engine)

    client = WeatherApiClient(
        api_key=config.weather_api_key,
        base_url=config.weather_api.base_url,
        timeout_seconds=config.weather_api.timeout_seconds,
        hourly_limit=config.weather_api.hourly_limit,
    )
    location = build_location_provider(config)
    orchestrator = WeatherOrchestrator(
        client=client,
        location=location,
        favorites=FavoritesStore(session_factory),
        last_place=LastPlaceStore(session_factory),
        search_debounce_s=config.search.debounce_s,
        forecast_days=config.weather_api.forecast_days,
    )
    logger.info("app_built", location_provider=config.location.provider)
    return App(orchestrator=orchestrator, client=client, location=location, engine=engine)


async def close_app(app: App) -> None:
    await app.orchestrator.close()
    await app.client.close()
    if isinstance(app.location, IPLocationProvider):
        await app.location.close()
    await app.engine.dispose()


@contextlib.asynccontextmanager
async def running_app(config: ForecastWeatherConfig | None = None) -> AsyncIterator[App]:
    """Build, bootstrap, and always tear down the app."""
    app = await build_app(config)
    try:
        await app.orchestrator.start()
        yield app
    finally:
        await close_app(app)
