"""Favorite cities persisted in the ``favorite_city`` table.

Writes are serialized in the order they are issued. Every committed write
publishes a fresh newest-first listing to all ``observe_all()`` subscribers.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forecastweather.connectors.weather_models import FavoritePlace
from forecastweather.utils.db import FavoriteCity
from forecastweather.utils.logger import get_logger

logger = get_logger("favorites_store")


def _to_place(row: FavoriteCity) -> FavoritePlace:
    created_at = row.created_at
    if created_at.tzinfo is None:
        # SQLite drops the offset; values are written in UTC
        created_at = created_at.replace(tzinfo=UTC)
    return FavoritePlace(
        name=row.name,
        region=row.region,
        country=row.country,
        latitude=row.latitude,
        longitude=row.longitude,
        created_at=created_at,
    )


class FavoritesStore:
    """Key-value table of favorite places keyed by name."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()
        self._subscribers: set[asyncio.Queue[list[FavoritePlace]]] = set()

    async def upsert(self, favorite: FavoritePlace) -> None:
        """Insert or replace the favorite with the same name."""
        async with self._write_lock:
            async with self._session_factory() as session:
                await session.merge(
                    FavoriteCity(
                        name=favorite.name,
                        region=favorite.region,
                        country=favorite.country,
                        latitude=favorite.latitude,
                        longitude=favorite.longitude,
                        created_at=favorite.created_at,
                    )
                )
                await session.commit()
            logger.info("favorite_upserted", name=favorite.name)
            await self._publish()

    async def delete(self, name: str) -> None:
        async with self._write_lock:
            async with self._session_factory() as session:
                await session.execute(delete(FavoriteCity).where(FavoriteCity.name == name))
                await session.commit()
            logger.info("favorite_deleted", name=name)
            await self._publish()

    async def exists(self, name: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(FavoriteCity.name).where(FavoriteCity.name == name).limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def list_all(self) -> list[FavoritePlace]:
        """All favorites, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(FavoriteCity).order_by(FavoriteCity.created_at.desc())
            )
            return [_to_place(row) for row in result.scalars()]

    async def observe_all(self) -> AsyncIterator[list[FavoritePlace]]:
        """Yield the current listing, then a new listing after every write."""
        queue: asyncio.Queue[list[FavoritePlace]] = asyncio.Queue()
        self._subscribers.add(queue)
        try:
            yield await self.list_all()
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)

    async def _publish(self) -> None:
        if not self._subscribers:
            return
        listing = await self.list_all()
        for queue in self._subscribers:
            queue.put_nowait(listing)
