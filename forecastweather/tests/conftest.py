"""Shared test fixtures for the forecastweather test suite."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forecastweather.utils.db import create_engine, init_db, make_session_factory

# Set test environment before any imports read config
os.environ.setdefault("MODE", "test")
os.environ.setdefault("WEATHER_API_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "DEBUG")


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """File-backed SQLite database with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'weather.db'}")
    await init_db(engine)
    yield make_session_factory(engine)
    await engine.dispose()

