# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for storage integrations.

This package contains implementations of the enrollment repository:
- Database connections and the SQL repository (PostgreSQL, SQLite)
- In-memory repository for development and tests
"""
