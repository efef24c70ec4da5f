"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 async: asyncpg for PostgreSQL, aiosqlite for local
development and tests.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy import DateTime
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from civictrack.config import settings
from civictrack.core import TransientStorageError


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase.
    All models inherit from this class.
    """
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime column.

    SQLite drops tzinfo on the way back; this restores it so deadline
    arithmetic never mixes naive and aware values.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# Global engine and session maker
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If engine has not been initialized
    """
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the session factory (used by components that own their transactions)."""
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the database engine and session maker.

    Should be called during application startup.

    Args:
        database_url: Override for settings.database_url (tests)

    Returns:
        AsyncEngine: The initialized engine
    """
    global _engine, _session_maker

    # asyncpg expects ssl= rather than libpq's sslmode=
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs: dict = {"echo": settings.debug}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"timeout": settings.db_command_timeout}
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            connect_args={
                "timeout": settings.db_pool_timeout,
                "command_timeout": settings.db_command_timeout,
            },
        )

    _engine = create_async_engine(url, **engine_kwargs)

    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading after commit
        autoflush=False,
    )

    return _engine


async def close_database() -> None:
    """
    Close the database engine and dispose of connections.

    Should be called during application shutdown.
    """
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async generator for database sessions.

    For use with FastAPI's Depends() - FastAPI handles the lifecycle.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    session_maker = get_session_maker()

    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions.

    For use in background tasks, scripts, and manual async operations.

    Usage:
        async with get_session_context() as session:
            result = await session.execute(select(TicketModel))
    """
    session_maker = get_session_maker()

    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncGenerator[None, None]:
    """
    Translate driver timeouts and dropped connections into TransientStorageError.

    Usage:
        async with storage_errors("load ticket"):
            result = await session.execute(stmt)
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError, asyncio.TimeoutError) as e:
        raise TransientStorageError(
            f"Storage unavailable during {operation}",
            {"operation": operation, "error": str(e)}
        ) from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise TransientStorageError(
                f"Storage connection lost during {operation}",
                {"operation": operation, "error": str(e)}
            ) from e
        raise


async def create_tables() -> None:
    """
    Create all database tables.

    Production should use migrations (Alembic).
    """
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
