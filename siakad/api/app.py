# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Builds the SIAKAD enrollment API.

Run with ``uvicorn siakad.api.app:create_app --factory``.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from siakad import __version__
from siakad.api.dependencies import close_db, get_term_calendar, init_db
from siakad.api.errors import register_exception_handlers
from siakad.api.middleware import RequestContextMiddleware
from siakad.api.routes import health
from siakad.api.v1 import router as v1_router
from siakad.core.config import Settings, get_settings
from siakad.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database and load the term calendar for the app's lifetime.

    A database that is down at boot is logged rather than fatal; /health
    reports it and requests fail with 503 until it comes back.
    """
    settings = get_settings()
    logger.info("SIAKAD enrollment API starting: environment=%s", settings.environment)

    try:
        await init_db()
    except Exception as e:
        logger.warning("Database unavailable at startup: %s", e)
    else:
        logger.info("Database ready")

    logger.info("Term calendar loaded: terms=%s", get_term_calendar().codes())

    try:
        yield
    finally:
        try:
            await close_db()
        except Exception as e:
            logger.warning("Database did not close cleanly: %s", e)
        logger.info("SIAKAD enrollment API stopped")


def _add_middleware(app: FastAPI, settings: Settings) -> None:
    # Starlette runs the last-added middleware first, so CORS wraps request context.
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )


def create_app() -> FastAPI:
    """Application factory.

    Interactive docs are only served when ``debug`` is on.
    """
    settings = get_settings()
    setup_logging(settings)

    docs = settings.debug
    app = FastAPI(
        title="SIAKAD Enrollment API",
        description="KRS validation and enrollment engine",
        version=__version__,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    register_exception_handlers(app)
    _add_middleware(app, settings)

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)
    return app
