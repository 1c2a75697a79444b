# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response envelope shared by all API endpoints.

Every response has the shape ``{success, data|error, timestamp}``.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from siakad.utils.datetime import utc_now

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Error payload of a failed request."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: Any = Field(None, description="Additional error context")


class APIResponse(BaseModel, Generic[T]):
    """Standard response envelope."""

    success: bool = Field(description="Whether the request succeeded")
    data: T | None = Field(None, description="Response payload on success")
    error: ErrorDetail | None = Field(None, description="Error payload on failure")
    timestamp: datetime = Field(default_factory=utc_now, description="Server time of the response")

    @classmethod
    def ok(cls, data: T) -> "APIResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, details: Any = None) -> "APIResponse[Any]":
        return cls(success=False, error=ErrorDetail(code=code, message=message, details=details))
