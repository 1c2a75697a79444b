# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception handlers translating errors into the response envelope.

Status codes:
- 404: Unknown student, course, slot, KRS or term; item not on the KRS
- 403: Inactive student or closed add/drop period
- 409: Concurrent modification, invalid transition, duplicate item
- 422: Request body validation (rule rejections are built by the
  submit endpoint itself)
- 503: Database unavailable
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from siakad.domains.enrollment.exceptions import (
    ConcurrentModificationError,
    DuplicateItemError,
    EnrollmentClosedError,
    EnrollmentServiceError,
    InvalidReferenceError,
    InvalidTransitionError,
    ItemNotFoundError,
    PrerequisiteCycleError,
    StudentInactiveError,
    SubmissionRetryExhaustedError,
)
from siakad.infrastructure.database.connection import DatabaseError
from siakad.models.common import APIResponse

logger = logging.getLogger(__name__)

# Checked in order, most specific first
ERROR_STATUS: list[tuple[type[EnrollmentServiceError], int, str]] = [
    (InvalidReferenceError, status.HTTP_404_NOT_FOUND, "INVALID_REFERENCE"),
    (ItemNotFoundError, status.HTTP_404_NOT_FOUND, "ITEM_NOT_FOUND"),
    (StudentInactiveError, status.HTTP_403_FORBIDDEN, "STUDENT_INACTIVE"),
    (EnrollmentClosedError, status.HTTP_403_FORBIDDEN, "ENROLLMENT_CLOSED"),
    (SubmissionRetryExhaustedError, status.HTTP_409_CONFLICT, "RETRY_EXHAUSTED"),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT, "CONCURRENT_MODIFICATION"),
    (InvalidTransitionError, status.HTTP_409_CONFLICT, "INVALID_TRANSITION"),
    (DuplicateItemError, status.HTTP_409_CONFLICT, "DUPLICATE_ITEM"),
    (PrerequisiteCycleError, status.HTTP_409_CONFLICT, "PREREQUISITE_CYCLE"),
]


def envelope_response(status_code: int, code: str, message: str, details: object = None) -> JSONResponse:
    """Build a failed-request envelope response."""
    body = APIResponse.fail(code=code, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def enrollment_error_handler(request: Request, exc: EnrollmentServiceError) -> JSONResponse:
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, code = status.HTTP_400_BAD_REQUEST, "ENROLLMENT_ERROR"

    logger.warning("Enrollment error on %s: %s - %s", request.url.path, code, exc.message)
    return envelope_response(status_code, code, exc.message, exc.details or None)


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("Database error on %s: %s", request.url.path, exc)
    return envelope_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DATABASE_ERROR",
        "Database is unavailable, please try again later",
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s: %s", request.url.path, errors)
    return envelope_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        errors,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return envelope_response(exc.status_code, "HTTP_ERROR", str(exc.detail))


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the application."""
    app.add_exception_handler(EnrollmentServiceError, enrollment_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
