# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

This package provides KRS (course registration) functionality including:
- Draft management (add and remove schedule slots)
- Submission with conflict, prerequisite, seat and credit checks
- All-or-nothing seat reservation and amendment of committed records
"""

from siakad.domains.enrollment.capacity import (
    CapacityGuard,
    CreditCheck,
    CreditPolicy,
    previous_term_gpa,
)
from siakad.domains.enrollment.conflicts import (
    ConflictDetector,
    SlotConflict,
    slots_overlap,
)
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
from siakad.domains.enrollment.models import (
    KRS,
    CommitOutcome,
    CompletionRecord,
    Course,
    DayOfWeek,
    Grade,
    KRSItem,
    KRSStatus,
    ReasonKind,
    RejectionReason,
    ScheduleSlot,
    Student,
    StudentStatus,
    SubmissionResult,
)
from siakad.domains.enrollment.prerequisites import (
    PrerequisiteCheck,
    PrerequisiteValidator,
    ensure_acyclic,
    find_prerequisite_cycle,
)
from siakad.domains.enrollment.repository import CatalogReader, EnrollmentRepository
from siakad.domains.enrollment.service import EnrollmentService

__all__ = [
    # Service
    "EnrollmentService",
    # Rule components
    "CapacityGuard",
    "ConflictDetector",
    "CreditCheck",
    "CreditPolicy",
    "PrerequisiteCheck",
    "PrerequisiteValidator",
    "SlotConflict",
    "ensure_acyclic",
    "find_prerequisite_cycle",
    "previous_term_gpa",
    "slots_overlap",
    # Repositories
    "CatalogReader",
    "EnrollmentRepository",
    # Models
    "KRS",
    "CommitOutcome",
    "CompletionRecord",
    "Course",
    "DayOfWeek",
    "Grade",
    "KRSItem",
    "KRSStatus",
    "ReasonKind",
    "RejectionReason",
    "ScheduleSlot",
    "Student",
    "StudentStatus",
    "SubmissionResult",
    # Exceptions
    "ConcurrentModificationError",
    "DuplicateItemError",
    "EnrollmentClosedError",
    "EnrollmentServiceError",
    "InvalidReferenceError",
    "InvalidTransitionError",
    "ItemNotFoundError",
    "PrerequisiteCycleError",
    "StudentInactiveError",
    "SubmissionRetryExhaustedError",
]
