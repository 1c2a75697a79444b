# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""KRS request and response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from siakad.domains.enrollment.models import KRS, RejectionReason, SubmissionResult


class KRSCreateRequest(BaseModel):
    """Request to open a KRS draft."""

    student_id: str = Field(min_length=1, max_length=32, description="Student NIM")
    term_code: str = Field(pattern=r"^\d{4}/[1-3]$", description="Academic term, e.g. 2025/1")


class KRSItemAddRequest(BaseModel):
    """Request to add a schedule slot to a draft."""

    schedule_slot_id: str = Field(min_length=1, max_length=32, description="Schedule slot id")


class KRSResponse(BaseModel):
    """A KRS record."""

    id: str
    student_id: str
    term_code: str
    status: str
    version: int
    schedule_slot_ids: list[str] = Field(description="Slots on the record, in order added")
    reserved_slot_ids: list[str] = Field(description="Slots holding a seat from the last commit")
    committed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, krs: KRS) -> "KRSResponse":
        return cls(
            id=krs.id,
            student_id=krs.student_id,
            term_code=krs.term_code,
            status=krs.status.value,
            version=krs.version,
            schedule_slot_ids=krs.slot_ids,
            reserved_slot_ids=sorted(krs.reserved_slot_ids),
            committed_at=krs.committed_at,
            created_at=krs.created_at,
            updated_at=krs.updated_at,
        )


class RejectionReasonResponse(BaseModel):
    """One failed rule."""

    kind: str = Field(description="conflict_detected, prerequisite_missing, seat_unavailable, ...")
    item: str | None = Field(None, description="Affected schedule slot, null for KRS-wide failures")
    detail: str
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, reason: RejectionReason) -> "RejectionReasonResponse":
        return cls(**reason.to_dict())


class SubmissionResponse(BaseModel):
    """Outcome of an accepted submission."""

    accepted: bool
    krs: KRSResponse

    @classmethod
    def from_domain(cls, result: SubmissionResult) -> "SubmissionResponse":
        return cls(accepted=result.accepted, krs=KRSResponse.from_domain(result.krs))


class ValidationResponse(BaseModel):
    """Dry-run validation of a KRS."""

    krs_id: str
    valid: bool
    reasons: list[RejectionReasonResponse] = Field(default_factory=list)
