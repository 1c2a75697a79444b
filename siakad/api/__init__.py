# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP API for the SIAKAD enrollment engine.

Example:
    uvicorn siakad.api.app:create_app --factory
"""
