# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness endpoint for load balancers and the operations dashboard."""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from siakad import __version__
from siakad.api.dependencies import get_term_calendar
from siakad.core.config import TermCalendar, get_settings
from siakad.infrastructure.database import check_database_connection
from siakad.models.common import APIResponse
from siakad.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = time.monotonic()


class HealthResponse(BaseModel):
    """Service status snapshot."""

    status: str = Field(description="healthy, or degraded when the database is down")
    version: str = Field(description="Package version")
    environment: str = Field(description="development, staging or production")
    uptime_seconds: int = Field(description="Seconds since the process started")
    checked_at: datetime = Field(description="UTC time of this check")
    database: str = Field(description="healthy or unhealthy")
    terms: list[str] = Field(description="Term codes in the loaded calendar")


@router.get("/health", response_model=APIResponse[HealthResponse], summary="Health check")
async def health(terms: TermCalendar = Depends(get_term_calendar)) -> APIResponse[HealthResponse]:
    """Report service health.

    The service is ``degraded`` when the database is unreachable.
    """
    database_ok = await check_database_connection()
    if not database_ok:
        logger.warning("Health check: database unreachable")

    return APIResponse.ok(
        HealthResponse(
            status="healthy" if database_ok else "degraded",
            version=__version__,
            environment=get_settings().environment,
            uptime_seconds=int(time.monotonic() - _started_at),
            checked_at=utc_now(),
            database="healthy" if database_ok else "unhealthy",
            terms=terms.codes(),
        )
    )
