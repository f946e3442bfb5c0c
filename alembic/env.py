"""Alembic environment for the local SQLite database (aiosqlite driver).

The database URL comes from ``config.attributes["database_url"]`` when a
caller passes one, otherwise from ``DATABASE_URL`` (environment or .env).
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

from forecastweather.utils.db import Base  # noqa: E402

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///forecastweather.db"

config = context.config

# Callers that already configured logging (the app, tests) opt out
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)


def database_url() -> str:
    return config.attributes.get("database_url") or os.getenv(
        "DATABASE_URL", DEFAULT_DATABASE_URL
    )


def _configure(**kwargs) -> None:  # type: ignore[no-untyped-def]
    # SQLite cannot ALTER most constraints in place
    context.configure(target_metadata=Base.metadata, render_as_batch=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def _migrate_sync(connection: Connection) -> None:
    _configure(connection=connection)


async def migrate_online() -> None:
    engine = create_async_engine(database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _configure(url=database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    asyncio.run(migrate_online())
