# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    krs: KRS drafts, submission and amendment.
"""

from fastapi import APIRouter

from siakad.api.v1 import krs

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(krs.router, prefix="/krs", tags=["KRS"])
