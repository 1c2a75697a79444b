# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for SIAKAD.

This package contains domain services that encapsulate business logic.
Domain code works on plain dataclasses and reaches storage only through
the repository interfaces it declares.

Domains:
    enrollment: KRS validation and commit (schedule conflicts,
        prerequisites, seat capacity, credit ceilings).
"""
