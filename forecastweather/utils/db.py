"""Database engine, session management, and SQLAlchemy 2.0 async models.

Local SQLite database (aiosqlite driver). All timestamps UTC.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 (Mapped resolves it at runtime)

from sqlalchemy import DateTime, Float, Index, String, Text, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ================================================================
# FAVORITE_CITY: Cities the user marked as favorite
# ================================================================
class FavoriteCity(Base):
    __tablename__ = "favorite_city"

    name: Mapped[str] = mapped_column(String(128), primary_key=True)
    region: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    latitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_favorite_city_created", created_at.desc()),)


# ================================================================
# SYSTEM_STATE: Persistent key-value storage (e.g. last viewed city)
# ================================================================
class SystemState(Base):
    __tablename__ = "system_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ================================================================
# Engine & Session Factory
# ================================================================


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(database_url, echo=False)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create missing tables. Alembic migrations cover schema changes."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

