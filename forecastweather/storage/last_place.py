"""Last viewed city, persisted as one row of the ``system_state`` table."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forecastweather.utils.db import SystemState
from forecastweather.utils.logger import get_logger

logger = get_logger("last_place_store")

_DB_KEY = "last_city"


class LastPlaceStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SystemState.value).where(SystemState.key == _DB_KEY)
            )
            return result.scalar_one_or_none()

    async def set(self, name: str) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SystemState).where(SystemState.key == _DB_KEY)
            )
            row = result.scalar_one_or_none()
            if row is not None:
                row.value = name
            else:
                session.add(SystemState(key=_DB_KEY, value=name))
            await session.commit()
        logger.debug("last_place_saved", name=name)
