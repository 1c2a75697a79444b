# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request and response models for the HTTP API."""

from siakad.models.common import APIResponse, ErrorDetail
from siakad.models.krs import (
    KRSCreateRequest,
    KRSItemAddRequest,
    KRSResponse,
    RejectionReasonResponse,
    SubmissionResponse,
    ValidationResponse,
)

__all__ = [
    "APIResponse",
    "ErrorDetail",
    "KRSCreateRequest",
    "KRSItemAddRequest",
    "KRSResponse",
    "RejectionReasonResponse",
    "SubmissionResponse",
    "ValidationResponse",
]
