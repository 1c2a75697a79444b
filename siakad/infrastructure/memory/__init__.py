# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory storage for development and tests."""

from siakad.infrastructure.memory.repository import InMemoryEnrollmentRepository

__all__ = ["InMemoryEnrollmentRepository"]
