# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistence interfaces used by the enrollment engine.

The engine reads the catalog and student history through CatalogReader
and writes KRS records through EnrollmentRepository. It never touches
storage directly.

Implementations must honour the commit contract of
EnrollmentRepository.commit_krs: seat updates are a compare-and-increment
per slot, slots are locked in ascending id order, and either every change
is applied or none is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from siakad.domains.enrollment.models import (
    KRS,
    CommitOutcome,
    CompletionRecord,
    Course,
    ScheduleSlot,
    Student,
)


class CatalogReader(ABC):
    """Read-only view of the catalog and student history."""

    @abstractmethod
    async def get_student(self, student_id: str) -> Student | None:
        """Get a student, or None if unknown."""

    @abstractmethod
    async def get_courses(self, course_ids: Iterable[str]) -> dict[str, Course]:
        """Get courses by id; unknown ids are absent from the result."""

    @abstractmethod
    async def get_slots(self, slot_ids: Iterable[str]) -> dict[str, ScheduleSlot]:
        """Get schedule slots with their current seats_taken.

        Unknown ids are absent from the result.
        """

    @abstractmethod
    async def get_completion_records(self, student_id: str) -> list[CompletionRecord]:
        """Get all completion records of a student."""

    @abstractmethod
    async def get_waivers(self, student_id: str) -> set[str]:
        """Get ids of courses whose prerequisites are waived for a student."""

    async def get_course(self, course_id: str) -> Course | None:
        return (await self.get_courses([course_id])).get(course_id)

    async def get_slot(self, slot_id: str) -> ScheduleSlot | None:
        return (await self.get_slots([slot_id])).get(slot_id)


class EnrollmentRepository(CatalogReader):
    """Catalog reads plus KRS persistence."""

    @abstractmethod
    async def get_krs(self, krs_id: str) -> KRS | None:
        """Get a KRS with its items, or None if unknown."""

    @abstractmethod
    async def find_krs(self, student_id: str, term_code: str) -> KRS | None:
        """Get the KRS of a student for a term, if any."""

    @abstractmethod
    async def create_krs(self, krs: KRS) -> KRS:
        """Persist a new KRS.

        Raises:
            ConcurrentModificationError: If the student already has a KRS
                for the term.
        """

    @abstractmethod
    async def save_krs(self, krs: KRS, expected_version: int) -> KRS:
        """Persist status and items of a KRS without touching seats.

        Args:
            krs: Record to store.
            expected_version: Version the caller read.

        Returns:
            Stored record with its version bumped.

        Raises:
            ConcurrentModificationError: If the stored version differs.
        """

    @abstractmethod
    async def commit_krs(
        self,
        krs: KRS,
        expected_version: int,
        reserve: Sequence[str],
        release: Sequence[str],
    ) -> CommitOutcome:
        """Atomically reserve seats and store the KRS as committed.

        Each slot in ``reserve`` gets ``seats_taken + 1`` only if
        ``seats_taken < capacity`` at that moment; each slot in ``release``
        gets ``seats_taken - 1``. If any reservation fails, nothing is
        written and the outcome lists the full slots.

        Args:
            krs: Validated record to commit.
            expected_version: Version the validation ran against.
            reserve: Slots newly added since the last commit.
            release: Previously held slots no longer on the record.

        Returns:
            CommitOutcome with the stored record on success.

        Raises:
            ConcurrentModificationError: On a stale version or lock timeout.
        """
