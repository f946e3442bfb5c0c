"""Location providers: where is the device right now?

A provider answers two synchronous questions (permission, service enabled)
and produces a one-shot position. ``None`` means the position is unavailable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

import aiohttp

from forecastweather.utils.logger import get_logger

logger = get_logger("location")

IP_LOOKUP_URL = "http://ip-api.com/json"


class LocationPermissionError(Exception):
    """Position requested without location permission."""


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float


class LocationProvider(Protocol):
    def has_permission(self) -> bool: ...

    def is_enabled(self) -> bool: ...

    async def get_current_position(self) -> Position | None: ...


class StaticLocationProvider:
    """Reports a fixed, configured position.

    Raises ``LocationPermissionError`` when permission is not granted and
    returns None when the service is disabled or no coordinates are set.
    """

    def __init__(
        self,
        latitude: float | None,
        longitude: float | None,
        permission_granted: bool = True,
        enabled: bool = True,
    ) -> None:
        self._latitude = latitude
        self._longitude = longitude
        self._permission_granted = permission_granted
        self._enabled = enabled

    def has_permission(self) -> bool:
        return self._permission_granted

    def is_enabled(self) -> bool:
        return self._enabled

    async def get_current_position(self) -> Position | None:
        if not self._permission_granted:
            raise LocationPermissionError("Location permission not granted")
        if not self._enabled or self._latitude is None or self._longitude is None:
            return None
        return Position(latitude=self._latitude, longitude=self._longitude)


class IPLocationProvider:
    """Resolves an approximate position from the public IP address.

    Any lookup failure yields None.
    """

    def __init__(
        self,
        url: str = IP_LOOKUP_URL,
        session: aiohttp.ClientSession | None = None,
        permission_granted: bool = True,
        enabled: bool = True,
    ) -> None:
        self._url = url
        self._session = session
        self._owns_session = session is None
        self._permission_granted = permission_granted
        self._enabled = enabled

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=10),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def has_permission(self) -> bool:
        return self._permission_granted

    def is_enabled(self) -> bool:
        return self._enabled

    async def get_current_position(self) -> Position | None:
        if not self._permission_granted:
            raise LocationPermissionError("Location permission not granted")
        if not self._enabled:
            return None

        session = await self._get_session()
        try:
            async with session.get(self._url) as resp:
                if resp.status != 200:
                    logger.warning("ip_location_http_error", status=resp.status)
                    return None
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("ip_location_connection_error", error=str(e))
            return None

        # ip-api.com uses lat/lon, most other services latitude/longitude
        lat = data.get("lat", data.get("latitude")) if isinstance(data, dict) else None
        lon = data.get("lon", data.get("longitude")) if isinstance(data, dict) else None
        if lat is None or lon is None:
            logger.warning("ip_location_missing_coordinates")
            return None

        position = Position(latitude=float(lat), longitude=float(lon))
        logger.debug("ip_location_resolved", lat=position.latitude, lon=position.longitude)
        return position
