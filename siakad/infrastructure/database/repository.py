# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the enrollment repository.

Every public method runs in its own session and transaction. The commit
path follows the locking protocol required for seat accounting:

1. Bump the KRS version guarded by the version the caller validated
   against (stale writers fail here before touching seats).
2. Lock the affected schedule slots with ``SELECT ... FOR UPDATE`` in
   ascending id order so concurrent committers never deadlock.
3. Reserve each new seat with a compare-and-increment
   (``seats_taken < capacity``) and release dropped seats.
4. Replace items and reservations, then commit. Any failed reservation
   rolls the whole transaction back.

On PostgreSQL the transaction uses ``SET LOCAL lock_timeout`` so that a
blocked commit surfaces as ConcurrentModificationError instead of
waiting indefinitely.
"""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from siakad.domains.enrollment.exceptions import (
    ConcurrentModificationError,
    InvalidReferenceError,
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
    ScheduleSlot,
    Student,
    StudentStatus,
)
from siakad.domains.enrollment.prerequisites import ensure_acyclic
from siakad.domains.enrollment.repository import EnrollmentRepository
from siakad.infrastructure.database.connection import DatabaseError
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
from siakad.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
CONTENTION_SQLSTATES = frozenset({"55P03", "40001", "40P01"})


def _is_contention(error: DBAPIError) -> bool:
    """Whether a driver error means lock contention rather than a real failure."""
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in CONTENTION_SQLSTATES:
        return True
    # SQLite reports a busy database as an OperationalError
    return "database is locked" in str(orig).lower()


class SQLEnrollmentRepository(EnrollmentRepository):
    """EnrollmentRepository backed by a relational database.

    Attributes:
        sessionmaker: Factory for async sessions.
        lock_timeout_ms: Row lock wait limit for commits (PostgreSQL).
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        lock_timeout_ms: int = 2000,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.lock_timeout_ms = lock_timeout_ms

    # =========================================================================
    # CatalogReader
    # =========================================================================

    async def get_student(self, student_id: str) -> Student | None:
        async with self.sessionmaker() as session:
            row = await session.get(StudentModel, student_id)
            return self._to_student(row) if row else None

    async def get_courses(self, course_ids: Iterable[str]) -> dict[str, Course]:
        ids = set(course_ids)
        if not ids:
            return {}
        async with self.sessionmaker() as session:
            result = await session.execute(select(CourseModel).where(CourseModel.id.in_(ids)))
            return {row.id: self._to_course(row) for row in result.scalars()}

    async def get_slots(self, slot_ids: Iterable[str]) -> dict[str, ScheduleSlot]:
        ids = set(slot_ids)
        if not ids:
            return {}
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(ScheduleSlotModel).where(ScheduleSlotModel.id.in_(ids))
            )
            return {row.id: self._to_slot(row) for row in result.scalars()}

    async def get_completion_records(self, student_id: str) -> list[CompletionRecord]:
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(CompletionRecordModel)
                .where(CompletionRecordModel.student_id == student_id)
                .order_by(CompletionRecordModel.term_code, CompletionRecordModel.id)
            )
            return [self._to_record(row) for row in result.scalars()]

    async def get_waivers(self, student_id: str) -> set[str]:
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(PrerequisiteWaiverModel.course_id).where(
                    PrerequisiteWaiverModel.student_id == student_id
                )
            )
            return set(result.scalars())

    # =========================================================================
    # KRS persistence
    # =========================================================================

    async def get_krs(self, krs_id: str) -> KRS | None:
        async with self.sessionmaker() as session:
            row = await session.get(KRSModel, krs_id)
            return self._to_krs(row) if row else None

    async def find_krs(self, student_id: str, term_code: str) -> KRS | None:
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(KRSModel).where(
                    KRSModel.student_id == student_id,
                    KRSModel.term_code == term_code,
                )
            )
            row = result.scalar_one_or_none()
            return self._to_krs(row) if row else None

    async def create_krs(self, krs: KRS) -> KRS:
        row = KRSModel(
            id=krs.id,
            student_id=krs.student_id,
            term_code=krs.term_code,
            status=krs.status.value,
            version=1,
            created_at=krs.created_at,
            updated_at=krs.updated_at,
            items=[
                KRSItemModel(schedule_slot_id=slot_id, position=position)
                for position, slot_id in enumerate(krs.slot_ids)
            ],
        )
        async with self.sessionmaker() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConcurrentModificationError(
                    f"Student {krs.student_id} already has a KRS for {krs.term_code}",
                    {"student_id": krs.student_id, "term_code": krs.term_code},
                ) from e
        return krs.copy(version=1)

    async def save_krs(self, krs: KRS, expected_version: int) -> KRS:
        async with self.sessionmaker() as session:
            try:
                await self._update_krs_row(session, krs, expected_version)
                await self._replace_items(session, krs)
                await session.commit()
            except DBAPIError as e:
                await session.rollback()
                raise self._translate(e, krs.id) from e
            except Exception:
                await session.rollback()
                raise
        return krs.copy(version=expected_version + 1)

    async def commit_krs(
        self,
        krs: KRS,
        expected_version: int,
        reserve: Sequence[str],
        release: Sequence[str],
    ) -> CommitOutcome:
        to_reserve = sorted(set(reserve))
        to_release = sorted(set(release))
        slot_ids = sorted(set(to_reserve) | set(to_release))

        async with self.sessionmaker() as session:
            try:
                if session.bind.dialect.name == "postgresql":
                    await session.execute(
                        text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'")
                    )

                await self._update_krs_row(session, krs, expected_version)

                if slot_ids:
                    locked = await session.execute(
                        select(ScheduleSlotModel.id)
                        .where(ScheduleSlotModel.id.in_(slot_ids))
                        .order_by(ScheduleSlotModel.id)
                        .with_for_update()
                    )
                    found = set(locked.scalars())
                    for slot_id in slot_ids:
                        if slot_id not in found:
                            raise InvalidReferenceError("schedule slot", slot_id)

                unavailable: list[str] = []
                for slot_id in to_reserve:
                    result = await session.execute(
                        update(ScheduleSlotModel)
                        .where(
                            ScheduleSlotModel.id == slot_id,
                            ScheduleSlotModel.seats_taken < ScheduleSlotModel.capacity,
                        )
                        .values(seats_taken=ScheduleSlotModel.seats_taken + 1)
                    )
                    if result.rowcount == 0:
                        unavailable.append(slot_id)

                if unavailable:
                    await session.rollback()
                    logger.debug(
                        "Commit aborted, slots full: krs=%s, slots=%s",
                        krs.id,
                        unavailable,
                    )
                    return CommitOutcome(committed=False, unavailable_slot_ids=tuple(unavailable))

                for slot_id in to_release:
                    await session.execute(
                        update(ScheduleSlotModel)
                        .where(ScheduleSlotModel.id == slot_id, ScheduleSlotModel.seats_taken > 0)
                        .values(seats_taken=ScheduleSlotModel.seats_taken - 1)
                    )

                await self._replace_items(session, krs)
                await session.execute(
                    delete(KRSReservationModel).where(KRSReservationModel.krs_id == krs.id)
                )
                if krs.reserved_slot_ids:
                    await session.execute(
                        insert(KRSReservationModel),
                        [
                            {"krs_id": krs.id, "schedule_slot_id": slot_id}
                            for slot_id in sorted(krs.reserved_slot_ids)
                        ],
                    )

                await session.commit()
            except DBAPIError as e:
                await session.rollback()
                raise self._translate(e, krs.id) from e
            except Exception:
                await session.rollback()
                raise

        return CommitOutcome(committed=True, krs=krs.copy(version=expected_version + 1))

    async def _update_krs_row(self, session: AsyncSession, krs: KRS, expected_version: int) -> None:
        """Write KRS columns if the stored version matches."""
        result = await session.execute(
            update(KRSModel)
            .where(KRSModel.id == krs.id, KRSModel.version == expected_version)
            .values(
                status=krs.status.value,
                version=expected_version + 1,
                committed_at=krs.committed_at,
                updated_at=utc_now(),
            )
        )
        if result.rowcount == 1:
            return

        current = await session.execute(select(KRSModel.version).where(KRSModel.id == krs.id))
        actual = current.scalar_one_or_none()
        if actual is None:
            raise InvalidReferenceError("krs", krs.id)
        raise ConcurrentModificationError(
            f"KRS {krs.id} was modified concurrently",
            {"krs_id": krs.id, "expected_version": expected_version, "actual_version": actual},
        )

    @staticmethod
    async def _replace_items(session: AsyncSession, krs: KRS) -> None:
        await session.execute(delete(KRSItemModel).where(KRSItemModel.krs_id == krs.id))
        if krs.items:
            await session.execute(
                insert(KRSItemModel),
                [
                    {"krs_id": krs.id, "schedule_slot_id": slot_id, "position": position}
                    for position, slot_id in enumerate(krs.slot_ids)
                ],
            )

    @staticmethod
    def _translate(error: DBAPIError, krs_id: str) -> Exception:
        if _is_contention(error):
            logger.warning("Lock contention on KRS %s: %s", krs_id, error.orig)
            return ConcurrentModificationError(
                f"KRS {krs_id} is being changed by another request",
                {"krs_id": krs_id},
            )
        return DatabaseError("Database operation failed", error)

    # =========================================================================
    # Catalog maintenance
    # =========================================================================

    async def add_student(self, student: Student) -> Student:
        async with self.sessionmaker() as session:
            await session.merge(
                StudentModel(
                    id=student.id,
                    program_id=student.program_id,
                    enrollment_year=student.enrollment_year,
                    status=student.status.value,
                )
            )
            await session.commit()
        return student

    async def add_course(self, course: Course) -> Course:
        """Add or replace a course with its prerequisites.

        Raises:
            PrerequisiteCycleError: If the prerequisites would form a cycle.
            InvalidReferenceError: If a prerequisite course is unknown.
        """
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(CoursePrerequisiteModel.course_id, CoursePrerequisiteModel.prerequisite_id)
            )
            graph: dict[str, set[str]] = {}
            for course_id, prerequisite_id in result.all():
                graph.setdefault(course_id, set()).add(prerequisite_id)
            graph[course.id] = set(course.prerequisite_ids)
            ensure_acyclic(graph)

            try:
                await session.merge(
                    CourseModel(
                        id=course.id,
                        code=course.code,
                        name=course.name,
                        credits=course.credits,
                        semester_level=course.semester_level,
                    )
                )
                await session.flush()
                await session.execute(
                    delete(CoursePrerequisiteModel).where(
                        CoursePrerequisiteModel.course_id == course.id
                    )
                )
                if course.prerequisite_ids:
                    await session.execute(
                        insert(CoursePrerequisiteModel),
                        [
                            {"course_id": course.id, "prerequisite_id": prerequisite_id}
                            for prerequisite_id in sorted(course.prerequisite_ids)
                        ],
                    )
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise InvalidReferenceError(
                    "course", ",".join(sorted(course.prerequisite_ids))
                ) from e
        return course

    async def add_slot(self, slot: ScheduleSlot) -> ScheduleSlot:
        async with self.sessionmaker() as session:
            try:
                await session.merge(
                    ScheduleSlotModel(
                        id=slot.id,
                        course_id=slot.course_id,
                        instructor_id=slot.instructor_id,
                        day=slot.day.value,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                        room=slot.room,
                        capacity=slot.capacity,
                        seats_taken=slot.seats_taken,
                    )
                )
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise InvalidReferenceError("course", slot.course_id) from e
        return slot

    async def add_completion_record(self, record: CompletionRecord) -> CompletionRecord:
        async with self.sessionmaker() as session:
            session.add(
                CompletionRecordModel(
                    student_id=record.student_id,
                    course_id=record.course_id,
                    grade=record.grade.value if record.grade else None,
                    term_code=record.term_code,
                )
            )
            await session.commit()
        return record

    async def add_waiver(self, student_id: str, course_id: str, granted_by: str | None = None) -> None:
        async with self.sessionmaker() as session:
            await session.merge(
                PrerequisiteWaiverModel(
                    student_id=student_id,
                    course_id=course_id,
                    granted_by=granted_by,
                )
            )
            await session.commit()

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _to_student(row: StudentModel) -> Student:
        return Student(
            id=row.id,
            program_id=row.program_id,
            enrollment_year=row.enrollment_year,
            status=StudentStatus(row.status),
        )

    @staticmethod
    def _to_course(row: CourseModel) -> Course:
        return Course(
            id=row.id,
            code=row.code,
            name=row.name,
            credits=row.credits,
            semester_level=row.semester_level,
            prerequisite_ids=frozenset(p.prerequisite_id for p in row.prerequisites),
        )

    @staticmethod
    def _to_slot(row: ScheduleSlotModel) -> ScheduleSlot:
        return ScheduleSlot(
            id=row.id,
            course_id=row.course_id,
            instructor_id=row.instructor_id,
            day=DayOfWeek(row.day),
            start_time=row.start_time,
            end_time=row.end_time,
            room=row.room,
            capacity=row.capacity,
            seats_taken=row.seats_taken,
        )

    @staticmethod
    def _to_record(row: CompletionRecordModel) -> CompletionRecord:
        return CompletionRecord(
            student_id=row.student_id,
            course_id=row.course_id,
            grade=Grade(row.grade) if row.grade else None,
            term_code=row.term_code,
        )

    @staticmethod
    def _to_krs(row: KRSModel) -> KRS:
        return KRS(
            id=row.id,
            student_id=row.student_id,
            term_code=row.term_code,
            status=KRSStatus(row.status),
            items=[KRSItem(krs_id=row.id, schedule_slot_id=item.schedule_slot_id) for item in row.items],
            version=row.version,
            reserved_slot_ids=frozenset(r.schedule_slot_id for r in row.reservations),
            committed_at=ensure_utc(row.committed_at),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )


