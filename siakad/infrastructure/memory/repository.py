# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory enrollment repository.

Keeps catalog, history and KRS records in dictionaries. It honours the
same commit contract as the SQL repository (per-slot locks taken in
ascending id order, compare-and-increment seats, version check, nothing
written unless every reservation succeeds), which makes it suitable for
tests and local development.

This implementation is designed for single-process async use. For
multiple workers, use the SQL repository.

Example:
    repo = InMemoryEnrollmentRepository()
    repo.add_student(Student(id="13521001", program_id="TI-S1", enrollment_year=2021))
    repo.add_course(Course(id="IF2110", code="IF2110", name="Algoritma", credits=3))
    service = EnrollmentService(repo, terms)
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import replace

from siakad.domains.enrollment.exceptions import (
    ConcurrentModificationError,
    InvalidReferenceError,
)
from siakad.domains.enrollment.models import (
    KRS,
    CommitOutcome,
    CompletionRecord,
    Course,
    ScheduleSlot,
    Student,
)
from siakad.domains.enrollment.prerequisites import ensure_acyclic
from siakad.domains.enrollment.repository import EnrollmentRepository

logger = logging.getLogger(__name__)


class InMemoryEnrollmentRepository(EnrollmentRepository):
    """Dictionary-backed EnrollmentRepository.

    Returned KRS objects are copies; changing them has no effect until
    they are saved.

    Attributes:
        _students: Students by id.
        _courses: Courses by id.
        _slots: Schedule slots by id, with live seats_taken.
        _records: Completion records per student.
        _waivers: Waived course ids per student.
        _krs: KRS records by id.
    """

    def __init__(self) -> None:
        self._students: dict[str, Student] = {}
        self._courses: dict[str, Course] = {}
        self._slots: dict[str, ScheduleSlot] = {}
        self._records: dict[str, list[CompletionRecord]] = defaultdict(list)
        self._waivers: dict[str, set[str]] = defaultdict(set)
        self._krs: dict[str, KRS] = {}
        self._slot_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._krs_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_student(self, student: Student) -> Student:
        self._students[student.id] = student
        return student

    def add_course(self, course: Course) -> Course:
        """Add or replace a course.

        Raises:
            PrerequisiteCycleError: If the course's prerequisites would
                form a cycle with the existing catalog.
        """
        graph = {cid: c.prerequisite_ids for cid, c in self._courses.items()}
        graph[course.id] = course.prerequisite_ids
        ensure_acyclic(graph)
        self._courses[course.id] = course
        return course

    def add_slot(self, slot: ScheduleSlot) -> ScheduleSlot:
        """Add or replace a schedule slot.

        Raises:
            InvalidReferenceError: If the slot's course is unknown.
        """
        if slot.course_id not in self._courses:
            raise InvalidReferenceError("course", slot.course_id)
        self._slots[slot.id] = slot
        return slot

    def add_completion_record(self, record: CompletionRecord) -> CompletionRecord:
        self._records[record.student_id].append(record)
        return record

    def add_waiver(self, student_id: str, course_id: str) -> None:
        self._waivers[student_id].add(course_id)

    def set_seats_taken(self, slot_id: str, seats_taken: int) -> ScheduleSlot:
        """Overwrite the live seat count of a slot."""
        slot = replace(self._slots[slot_id], seats_taken=seats_taken)
        self._slots[slot_id] = slot
        return slot

    # =========================================================================
    # CatalogReader
    # =========================================================================

    async def get_student(self, student_id: str) -> Student | None:
        return self._students.get(student_id)

    async def get_courses(self, course_ids: Iterable[str]) -> dict[str, Course]:
        return {cid: self._courses[cid] for cid in course_ids if cid in self._courses}

    async def get_slots(self, slot_ids: Iterable[str]) -> dict[str, ScheduleSlot]:
        return {sid: self._slots[sid] for sid in slot_ids if sid in self._slots}

    async def get_completion_records(self, student_id: str) -> list[CompletionRecord]:
        return list(self._records.get(student_id, []))

    async def get_waivers(self, student_id: str) -> set[str]:
        return set(self._waivers.get(student_id, set()))

    # =========================================================================
    # KRS persistence
    # =========================================================================

    async def get_krs(self, krs_id: str) -> KRS | None:
        krs = self._krs.get(krs_id)
        return krs.copy() if krs else None

    async def find_krs(self, student_id: str, term_code: str) -> KRS | None:
        for krs in self._krs.values():
            if krs.student_id == student_id and krs.term_code == term_code:
                return krs.copy()
        return None

    async def create_krs(self, krs: KRS) -> KRS:
        async with self._krs_locks[krs.id]:
            if krs.id in self._krs or await self.find_krs(krs.student_id, krs.term_code):
                raise ConcurrentModificationError(
                    f"Student {krs.student_id} already has a KRS for {krs.term_code}",
                    {"student_id": krs.student_id, "term_code": krs.term_code},
                )
            stored = krs.copy(version=1)
            self._krs[krs.id] = stored
            return stored.copy()

    async def save_krs(self, krs: KRS, expected_version: int) -> KRS:
        async with self._krs_locks[krs.id]:
            self._check_version(krs.id, expected_version)
            stored = krs.copy(version=expected_version + 1)
            self._krs[krs.id] = stored
            return stored.copy()

    async def commit_krs(
        self,
        krs: KRS,
        expected_version: int,
        reserve: Sequence[str],
        release: Sequence[str],
    ) -> CommitOutcome:
        slot_ids = sorted(set(reserve) | set(release))

        async with self._krs_locks[krs.id]:
            self._check_version(krs.id, expected_version)

            locks = [self._slot_locks[slot_id] for slot_id in slot_ids]
            for lock in locks:
                await lock.acquire()
            try:
                for slot_id in slot_ids:
                    if slot_id not in self._slots:
                        raise InvalidReferenceError("schedule slot", slot_id)

                unavailable = tuple(
                    slot_id for slot_id in sorted(set(reserve))
                    if not self._slots[slot_id].has_free_seat
                )
                if unavailable:
                    logger.debug(
                        "Commit aborted, slots full: krs=%s, slots=%s",
                        krs.id,
                        unavailable,
                    )
                    return CommitOutcome(committed=False, unavailable_slot_ids=unavailable)

                for slot_id in sorted(set(reserve)):
                    slot = self._slots[slot_id]
                    self._slots[slot_id] = replace(slot, seats_taken=slot.seats_taken + 1)
                for slot_id in sorted(set(release)):
                    slot = self._slots[slot_id]
                    self._slots[slot_id] = replace(slot, seats_taken=max(0, slot.seats_taken - 1))

                stored = krs.copy(version=expected_version + 1)
                self._krs[krs.id] = stored
                return CommitOutcome(committed=True, krs=stored.copy())
            finally:
                for lock in reversed(locks):
                    lock.release()

    def _check_version(self, krs_id: str, expected_version: int) -> None:
        current = self._krs.get(krs_id)
        if current is None:
            raise InvalidReferenceError("krs", krs_id)
        if current.version != expected_version:
            raise ConcurrentModificationError(
                f"KRS {krs_id} was modified concurrently",
                {
                    "krs_id": krs_id,
                    "expected_version": expected_version,
                    "actual_version": current.version,
                },
            )
