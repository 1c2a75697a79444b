# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the SIAKAD database."""

from siakad.infrastructure.database.models.base import Base, TimestampMixin
from siakad.infrastructure.database.models.enrollment import (
    CompletionRecordModel,
    CourseModel,
    CoursePrerequisiteModel,
    KRSItemModel,
    KRSModel,
    KRSReservationModel,
    PrerequisiteWaiverModel,
    ScheduleSlotModel,
    StudentModel,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "CompletionRecordModel",
    "CourseModel",
    "CoursePrerequisiteModel",
    "KRSItemModel",
    "KRSModel",
    "KRSReservationModel",
    "PrerequisiteWaiverModel",
    "ScheduleSlotModel",
    "StudentModel",
]
