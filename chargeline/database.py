"""
Database configuration and session management.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from loguru import logger
from chargeline.config import (
    DATABASE_URL,
    DB_POOL_SIZE,
    DB_MAX_OVERFLOW,
    DB_POOL_TIMEOUT,
    DB_POOL_RECYCLE,
)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def build_engine(url: str = DATABASE_URL, **kwargs):
    """
    Create an async engine for the given URL.

    SQLite URLs skip the queue pool settings, which the SQLite dialect does
    not accept.
    """
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_size", DB_POOL_SIZE)
        kwargs.setdefault("max_overflow", DB_MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", DB_POOL_TIMEOUT)
        kwargs.setdefault("pool_recycle", DB_POOL_RECYCLE)
    return create_async_engine(url, echo=False, **kwargs)


# Create async engine
engine = build_engine()

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def init_db(bind=None):
    """Initialize the database by creating all tables."""
    # Importing the models registers them on Base.metadata
    import chargeline.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")


async def close_db():
    """Close the database engine."""
    await engine.dispose()
    logger.info("Database connection closed")
