# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Initialize and close the database
- Load the academic term calendar
- Build the enrollment repository and service

Example:
    @router.get("/krs/{krs_id}")
    async def get_krs(
        krs_id: str,
        service: EnrollmentService = Depends(get_enrollment_service),
    ):
        ...
"""

import logging

from fastapi import Depends

from siakad.core.config import TermCalendar, get_settings, load_term_calendar
from siakad.domains.enrollment import EnrollmentRepository, EnrollmentService, Grade
from siakad.infrastructure.database import (
    SQLEnrollmentRepository,
    close_database,
    create_all,
    get_engine,
    get_sessionmaker,
    init_database,
)

logger = logging.getLogger(__name__)

# Term calendar singleton, loaded on first use
_term_calendar: TermCalendar | None = None


async def init_db() -> None:
    """Initialize the database connection.

    SQLite databases get their tables created on startup in development.
    """
    settings = get_settings()
    await init_database(settings)

    if settings.database.is_sqlite and settings.is_development:
        await create_all(get_engine())
        logger.info("SQLite schema ensured")


async def close_db() -> None:
    """Close the database connection."""
    await close_database()


def get_term_calendar() -> TermCalendar:
    """Get the academic term calendar loaded from configuration."""
    global _term_calendar

    if _term_calendar is None:
        settings = get_settings()
        _term_calendar = load_term_calendar(
            settings.enrollment.terms_file,
            default_max_credits=settings.enrollment.default_max_credits,
        )
    return _term_calendar


def get_repository() -> EnrollmentRepository:
    """Get the SQL enrollment repository."""
    settings = get_settings()
    return SQLEnrollmentRepository(
        get_sessionmaker(),
        lock_timeout_ms=settings.database.lock_timeout_ms,
    )


def get_enrollment_service(
    repository: EnrollmentRepository = Depends(get_repository),
    terms: TermCalendar = Depends(get_term_calendar),
) -> EnrollmentService:
    """Get an enrollment service configured from settings."""
    settings = get_settings()
    return EnrollmentService(
        repository,
        terms,
        minimum_passing_grade=Grade(settings.enrollment.minimum_passing_grade),
        max_commit_attempts=settings.enrollment.max_commit_attempts,
    )
