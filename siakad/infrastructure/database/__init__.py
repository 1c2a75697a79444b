# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure using SQLAlchemy async.

Example:
    from siakad.infrastructure.database import (
        init_database,
        get_sessionmaker,
        SQLEnrollmentRepository,
    )

    await init_database(settings)
    repository = SQLEnrollmentRepository(get_sessionmaker())
"""

from siakad.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_all,
    create_engine,
    create_sessionmaker,
    get_engine,
    get_sessionmaker,
    init_database,
)
from siakad.infrastructure.database.repository import SQLEnrollmentRepository

__all__ = [
    "DatabaseError",
    "SQLEnrollmentRepository",
    "check_database_connection",
    "close_database",
    "create_all",
    "create_engine",
    "create_sessionmaker",
    "get_engine",
    "get_sessionmaker",
    "init_database",
]
