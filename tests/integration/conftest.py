# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for integration tests.

Database tests run against TEST_DATABASE_URL when it is set (e.g. a
PostgreSQL test database) and against a throwaway SQLite file otherwise.
"""

import os
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from siakad.infrastructure.database import SQLEnrollmentRepository
from siakad.infrastructure.database.connection import create_engine, create_sessionmaker
from siakad.infrastructure.database.models import Base


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Get database URL for tests."""
    return os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'siakad_test.db'}")


@pytest_asyncio.fixture(scope="function")
async def db_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine with a fresh schema."""
    engine = create_engine(database_url, pool_size=5, max_overflow=5)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def sql_repository(db_engine: AsyncEngine, catalog: dict[str, list]) -> SQLEnrollmentRepository:
    """Create a SQL repository seeded with the shared catalog."""
    repo = SQLEnrollmentRepository(create_sessionmaker(db_engine), lock_timeout_ms=500)

    for student in catalog["students"]:
        await repo.add_student(student)
    for course in catalog["courses"]:
        await repo.add_course(course)
    for slot in catalog["slots"]:
        await repo.add_slot(slot)
    for record in catalog["records"]:
        await repo.add_completion_record(record)

    return repo
