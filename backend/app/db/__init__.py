"""
Database Layer - Async SQLAlchemy engine + session factory.

Engines are built on demand so importing the package never connects; the
quote store owns one engine per URL for the lifetime of a session.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import DATABASE_URL

logger = logging.getLogger("fenestra-db")


class Base(DeclarativeBase):
    pass


def build_engine(url: Optional[str] = None, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for ``url`` (defaults to DATABASE_URL).

    Pool sizing only applies to server databases; SQLite gets the default pool.
    """
    url = url or DATABASE_URL
    kwargs = {"echo": echo}
    if url.startswith("postgresql"):
        kwargs.update(pool_size=10, max_overflow=20, pool_pre_ping=True, pool_timeout=5)
    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create missing tables for every mapped model."""
    from app.models import orm_models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized.")
