# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine and session lifecycle for the academic database.

Deployments run PostgreSQL through asyncpg; an aiosqlite URL works for a
single-process laptop run and for the integration tests. The API opens
the pool in its lifespan with init_database() and repositories take
sessions from get_sessionmaker().
"""

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from siakad.infrastructure.database.models.base import Base

if TYPE_CHECKING:
    from siakad.core.config.settings import Settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


class DatabaseError(Exception):
    """The database could not be reached or a statement failed.

    Attributes:
        message: What was being attempted.
        original_error: Driver or SQLAlchemy exception, if any.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is None:
            return self.message
        return f"{self.message}: {self.original_error}"


def create_engine(url: str, pool_size: int = 10, max_overflow: int = 20, echo: bool = False) -> AsyncEngine:
    """Build an async engine for ``url``.

    SQLite connections get ``PRAGMA foreign_keys=ON`` and skip pool sizing;
    PostgreSQL gets a pre-pinged pool recycled every 30 minutes.
    """
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo, connect_args={"timeout": 30.0})

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        echo=echo,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Repositories flush explicitly and read back committed objects.
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(settings: "Settings") -> None:
    """Open the process-wide engine from ``settings.database``.

    Raises:
        DatabaseError: If SQLAlchemy rejects the URL or pool options.
    """
    global _engine, _sessionmaker

    db = settings.database
    try:
        _engine = create_engine(db.url, pool_size=db.pool_size, max_overflow=db.max_overflow, echo=settings.debug)
    except SQLAlchemyError as e:
        raise DatabaseError("Could not create database engine", e) from e
    _sessionmaker = create_sessionmaker(_engine)

    logger.info("Database engine created: sqlite=%s", db.is_sqlite)


async def close_database() -> None:
    """Dispose of the engine; safe to call when nothing is open."""
    global _engine, _sessionmaker

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


async def create_all(engine: AsyncEngine) -> None:
    """Create missing enrollment tables."""
    from siakad.infrastructure.database.models import enrollment  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database_connection() -> bool:
    """Whether a trivial query succeeds on the current engine."""
    if _engine is None:
        return False

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True
