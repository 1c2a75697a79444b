# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""KRS (course registration) API endpoints.

This module provides endpoints for the KRS lifecycle:
- POST / - Open a KRS draft for a student and term
- GET /{krs_id} - Get a KRS
- POST /{krs_id}/items - Add a schedule slot to the draft
- DELETE /{krs_id}/items/{slot_id} - Remove a schedule slot from the draft
- POST /{krs_id}/validate - Check the draft without committing
- POST /{krs_id}/submit - Validate and commit the KRS
- POST /{krs_id}/amend - Reopen a committed KRS

Service errors are translated to the response envelope by the handlers
in siakad.api.errors. A rejected submission is answered with 422 and the
itemized rejection reasons.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from siakad.api.dependencies import get_enrollment_service
from siakad.api.errors import envelope_response
from siakad.domains.enrollment import EnrollmentService
from siakad.models.common import APIResponse
from siakad.models.krs import (
    KRSCreateRequest,
    KRSItemAddRequest,
    KRSResponse,
    RejectionReasonResponse,
    SubmissionResponse,
    ValidationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=APIResponse[KRSResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Open KRS draft",
    description="Open the student's KRS for a term, or return the existing one.",
)
async def create_krs(
    data: KRSCreateRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[KRSResponse]:
    """Open a KRS draft.

    Args:
        data: Student and term.
        service: Enrollment service.

    Returns:
        The student's KRS for the term.
    """
    logger.info("Opening KRS: student=%s, term=%s", data.student_id, data.term_code)
    krs = await service.create_draft(data.student_id, data.term_code)
    return APIResponse.ok(KRSResponse.from_domain(krs))


@router.get(
    "/{krs_id}",
    response_model=APIResponse[KRSResponse],
    summary="Get KRS",
)
async def get_krs(
    krs_id: str,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[KRSResponse]:
    krs = await service.get_krs(krs_id)
    return APIResponse.ok(KRSResponse.from_domain(krs))


@router.post(
    "/{krs_id}/items",
    response_model=APIResponse[KRSResponse],
    summary="Add schedule slot",
    description="Add a schedule slot to a draft. Rules are checked on submit.",
)
async def add_item(
    krs_id: str,
    data: KRSItemAddRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[KRSResponse]:
    krs = await service.add_item(krs_id, data.schedule_slot_id)
    return APIResponse.ok(KRSResponse.from_domain(krs))


@router.delete(
    "/{krs_id}/items/{slot_id}",
    response_model=APIResponse[KRSResponse],
    summary="Remove schedule slot",
)
async def remove_item(
    krs_id: str,
    slot_id: str,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[KRSResponse]:
    krs = await service.remove_item(krs_id, slot_id)
    return APIResponse.ok(KRSResponse.from_domain(krs))


@router.post(
    "/{krs_id}/validate",
    response_model=APIResponse[ValidationResponse],
    summary="Validate KRS",
    description="Run every rule check against current state without committing.",
)
async def validate_krs(
    krs_id: str,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[ValidationResponse]:
    reasons = await service.validate(krs_id)
    return APIResponse.ok(
        ValidationResponse(
            krs_id=krs_id,
            valid=not reasons,
            reasons=[RejectionReasonResponse.from_domain(r) for r in reasons],
        )
    )


@router.post(
    "/{krs_id}/submit",
    response_model=APIResponse[SubmissionResponse],
    summary="Submit KRS",
    description=(
        "Validate the KRS and commit it with its seat reservations. "
        "A rejection returns 422 with every failed rule."
    ),
    responses={422: {"description": "KRS rejected, see error.details"}},
)
async def submit_krs(
    krs_id: str,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[SubmissionResponse] | JSONResponse:
    """Submit a KRS.

    Args:
        krs_id: KRS identifier.
        service: Enrollment service.

    Returns:
        Committed KRS, or a 422 envelope listing rejection reasons.
    """
    result = await service.submit(krs_id)

    if not result.accepted:
        return envelope_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "KRS_REJECTED",
            f"KRS rejected with {len(result.reasons)} problem(s)",
            [RejectionReasonResponse.from_domain(r).model_dump(mode="json") for r in result.reasons],
        )

    return APIResponse.ok(SubmissionResponse.from_domain(result))


@router.post(
    "/{krs_id}/amend",
    response_model=APIResponse[KRSResponse],
    summary="Amend committed KRS",
    description="Reopen a committed KRS as a draft. Seats stay reserved until the next submit.",
)
async def amend_krs(
    krs_id: str,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> APIResponse[KRSResponse]:
    krs = await service.amend(krs_id)
    return APIResponse.ok(KRSResponse.from_domain(krs))
