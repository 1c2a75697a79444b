# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions for the enrollment domain.

Rule failures (schedule conflicts, missing prerequisites, full slots,
credit overflow) are not exceptions: they are returned as rejection
reasons on the submission result. The exceptions here cover requests
that cannot be evaluated at all:
- EnrollmentServiceError: Base exception for enrollment errors
- InvalidReferenceError: Unknown student, course, slot, KRS or term
- StudentInactiveError: Student may not enroll
- EnrollmentClosedError: The term's add/drop deadline has passed
- InvalidTransitionError: Operation not allowed in the KRS's state
- DuplicateItemError / ItemNotFoundError: KRS item edits
- ConcurrentModificationError: Stale read or lock contention
- SubmissionRetryExhaustedError: Contention persisted across retries
- PrerequisiteCycleError: Catalog change would make a course require itself
"""

from typing import Any


class EnrollmentServiceError(Exception):
    """Base exception for enrollment service errors.

    Attributes:
        message: Human-readable error description.
        details: Additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidReferenceError(EnrollmentServiceError):
    """Raised when a referenced entity does not exist.

    Not recoverable: the submission is abandoned without retry.
    """

    def __init__(self, reference_type: str, reference_id: str) -> None:
        self.reference_type = reference_type
        self.reference_id = reference_id
        super().__init__(
            f"Unknown {reference_type} '{reference_id}'",
            {"reference_type": reference_type, "reference_id": reference_id},
        )


class StudentInactiveError(EnrollmentServiceError):
    """Raised when an inactive or graduated student tries to enroll."""

    pass


class EnrollmentClosedError(EnrollmentServiceError):
    """Raised when the add/drop period of the term has ended."""

    pass


class InvalidTransitionError(EnrollmentServiceError):
    """Raised when a KRS operation is not allowed in its current state."""

    pass


class DuplicateItemError(EnrollmentServiceError):
    """Raised when a schedule slot is already on the KRS."""

    pass


class ItemNotFoundError(EnrollmentServiceError):
    """Raised when removing a schedule slot that is not on the KRS."""

    pass


class ConcurrentModificationError(EnrollmentServiceError):
    """Raised when a KRS was changed concurrently or a lock could not be taken."""

    pass


class SubmissionRetryExhaustedError(ConcurrentModificationError):
    """Raised when a submission kept colliding with concurrent writers.

    Attributes:
        attempts: Number of attempts made.
    """

    def __init__(self, krs_id: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"KRS {krs_id} could not be committed after {attempts} attempts, try again",
            {"krs_id": krs_id, "attempts": attempts},
        )


class PrerequisiteCycleError(EnrollmentServiceError):
    """Raised when prerequisites would form a cycle.

    Attributes:
        cycle: Course ids along the cycle, first id repeated at the end.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(
            f"Prerequisite cycle: {' -> '.join(cycle)}",
            {"cycle": cycle},
        )
