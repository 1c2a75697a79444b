# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for validating and committing KRS records.

This module provides the EnrollmentService class for:
- KRS drafts (create, add and remove schedule slots)
- Submission: conflict, prerequisite, seat and credit checks with an
  all-or-nothing commit
- Amendment of committed records

A submission reports every failed rule at once so the student can fix
the draft in one pass. Only the final commit mutates shared state, and it
is retried with fresh validation when it collides with a concurrent
writer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from siakad.core.config.terms import TermCalendar, TermConfig
from siakad.domains.enrollment.capacity import CapacityGuard, CreditPolicy
from siakad.domains.enrollment.conflicts import ConflictDetector
from siakad.domains.enrollment.exceptions import (
    ConcurrentModificationError,
    DuplicateItemError,
    EnrollmentClosedError,
    InvalidReferenceError,
    InvalidTransitionError,
    ItemNotFoundError,
    StudentInactiveError,
    SubmissionRetryExhaustedError,
)
from siakad.domains.enrollment.models import (
    KRS,
    CompletionRecord,
    Course,
    Grade,
    KRSItem,
    KRSStatus,
    ReasonKind,
    RejectionReason,
    ScheduleSlot,
    Student,
    SubmissionResult,
)
from siakad.domains.enrollment.prerequisites import PrerequisiteValidator
from siakad.domains.enrollment.repository import EnrollmentRepository
from siakad.utils.datetime import format_clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class _SubmissionContext:
    """Everything validation reads for one KRS."""

    student: Student
    slots: dict[str, ScheduleSlot]
    courses: dict[str, Course]
    records: list[CompletionRecord]
    waivers: set[str]


class EnrollmentService:
    """Service for KRS enrollment.

    Attributes:
        repository: Persistence for catalog reads and KRS writes.
        terms: Academic term calendar (credit ceilings, deadlines).
        max_commit_attempts: Commit attempts before giving up on contention.
    """

    def __init__(
        self,
        repository: EnrollmentRepository,
        terms: TermCalendar,
        minimum_passing_grade: Grade = Grade.C,
        max_commit_attempts: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize enrollment service.

        Args:
            repository: Enrollment repository.
            terms: Term calendar injected from configuration.
            minimum_passing_grade: Lowest grade satisfying a prerequisite.
            max_commit_attempts: Attempts before SubmissionRetryExhaustedError.
            clock: Source of the current time, for deadline checks.
        """
        if max_commit_attempts < 1:
            raise ValueError("max_commit_attempts must be at least 1")

        self.repository = repository
        self.terms = terms
        self.max_commit_attempts = max_commit_attempts
        self.conflict_detector = ConflictDetector()
        self.prerequisite_validator = PrerequisiteValidator(minimum_passing_grade)
        self.capacity_guard = CapacityGuard()
        self._clock = clock

    # =========================================================================
    # Drafts
    # =========================================================================

    async def create_draft(self, student_id: str, term_code: str) -> KRS:
        """Create the KRS of a student for a term.

        A student has one KRS per term; if it already exists it is returned
        unchanged.

        Args:
            student_id: Student identifier.
            term_code: Academic term code.

        Returns:
            The student's KRS for the term.

        Raises:
            InvalidReferenceError: If the student or term is unknown.
            StudentInactiveError: If the student is not active.
            EnrollmentClosedError: If the add/drop period has ended.
        """
        term = self._get_term(term_code)
        await self._get_active_student(student_id)

        existing = await self.repository.find_krs(student_id, term_code)
        if existing:
            return existing

        self._ensure_open(term)

        krs = KRS(id=str(uuid4()), student_id=student_id, term_code=term_code)
        try:
            created = await self.repository.create_krs(krs)
        except ConcurrentModificationError:
            # Another request created it first
            existing = await self.repository.find_krs(student_id, term_code)
            if existing is None:
                raise
            return existing

        logger.info(
            "Created KRS draft: krs=%s, student=%s, term=%s",
            created.id,
            student_id,
            term_code,
        )
        return created

    async def get_krs(self, krs_id: str) -> KRS:
        """Get a KRS.

        Raises:
            InvalidReferenceError: If the KRS does not exist.
        """
        krs = await self.repository.get_krs(krs_id)
        if krs is None:
            raise InvalidReferenceError("krs", krs_id)
        return krs

    async def add_item(self, krs_id: str, slot_id: str) -> KRS:
        """Add a schedule slot to a draft.

        Rule checks are deferred to submit; only references are checked here.

        Args:
            krs_id: KRS identifier.
            slot_id: Schedule slot to add.

        Returns:
            Updated KRS.

        Raises:
            InvalidReferenceError: If the KRS or slot does not exist.
            InvalidTransitionError: If the KRS is not a draft.
            DuplicateItemError: If the slot is already on the KRS.
            EnrollmentClosedError: If the add/drop period has ended.
            ConcurrentModificationError: If the KRS changed meanwhile.
        """
        krs = await self._get_editable_krs(krs_id)

        if await self.repository.get_slot(slot_id) is None:
            raise InvalidReferenceError("schedule slot", slot_id)

        if krs.has_slot(slot_id):
            raise DuplicateItemError(
                f"Schedule slot {slot_id} is already on KRS {krs_id}",
                {"krs_id": krs_id, "schedule_slot_id": slot_id},
            )

        updated = krs.copy(
            items=[*krs.items, KRSItem(krs_id=krs.id, schedule_slot_id=slot_id)],
            updated_at=self._clock(),
        )
        saved = await self.repository.save_krs(updated, expected_version=krs.version)

        logger.debug("Added slot to KRS: krs=%s, slot=%s", krs_id, slot_id)
        return saved

    async def remove_item(self, krs_id: str, slot_id: str) -> KRS:
        """Remove a schedule slot from a draft.

        A slot that holds a seat from an earlier commit keeps it until the
        next successful submit releases it.

        Raises:
            InvalidReferenceError: If the KRS does not exist.
            InvalidTransitionError: If the KRS is not a draft.
            ItemNotFoundError: If the slot is not on the KRS.
            EnrollmentClosedError: If the add/drop period has ended.
            ConcurrentModificationError: If the KRS changed meanwhile.
        """
        krs = await self._get_editable_krs(krs_id)

        if not krs.has_slot(slot_id):
            raise ItemNotFoundError(
                f"Schedule slot {slot_id} is not on KRS {krs_id}",
                {"krs_id": krs_id, "schedule_slot_id": slot_id},
            )

        updated = krs.copy(
            items=[item for item in krs.items if item.schedule_slot_id != slot_id],
            updated_at=self._clock(),
        )
        saved = await self.repository.save_krs(updated, expected_version=krs.version)

        logger.debug("Removed slot from KRS: krs=%s, slot=%s", krs_id, slot_id)
        return saved

    async def amend(self, krs_id: str) -> KRS:
        """Reopen a committed KRS for changes.

        The record returns to draft while keeping its reserved seats; the
        next submit re-validates the whole record and only reserves or
        releases the difference.

        Raises:
            InvalidReferenceError: If the KRS does not exist.
            InvalidTransitionError: If the KRS is not committed.
            EnrollmentClosedError: If the add/drop period has ended.
        """
        krs = await self.get_krs(krs_id)
        if krs.status != KRSStatus.COMMITTED:
            raise InvalidTransitionError(
                f"Only a committed KRS can be amended, KRS {krs_id} is {krs.status.value}",
                {"krs_id": krs_id, "status": krs.status.value},
            )

        self._ensure_open(self._get_term(krs.term_code))
        await self._get_active_student(krs.student_id)

        reopened = krs.copy(status=KRSStatus.DRAFT, updated_at=self._clock())
        saved = await self.repository.save_krs(reopened, expected_version=krs.version)

        logger.info("Opened KRS amendment: krs=%s, student=%s", krs_id, krs.student_id)
        return saved

    # =========================================================================
    # Validation and submission
    # =========================================================================

    async def validate(self, krs_id: str) -> list[RejectionReason]:
        """Run all rule checks on a KRS without committing.

        Returns:
            Every failed rule; empty when the KRS would be accepted now.

        Raises:
            InvalidReferenceError: If the KRS or anything it references
                does not exist.
        """
        krs = await self.get_krs(krs_id)
        term = self._get_term(krs.term_code)
        context = await self._load_context(krs)
        return self._evaluate(krs, context, term)

    async def submit(self, krs_id: str) -> SubmissionResult:
        """Submit a KRS for validation and commit.

        All checks run against fresh state on every attempt. When every
        check passes, seats for newly added slots are reserved, seats of
        dropped slots are released, and the record becomes committed in
        one repository transaction. Any failed rule rejects the whole
        submission and nothing is written.

        Resubmitting a committed record returns it unchanged. An amended
        record whose items still match its last commit may be resubmitted
        after the add/drop deadline, since no seat moves.

        Args:
            krs_id: KRS identifier.

        Returns:
            SubmissionResult with the committed KRS, or the rejected
            candidate with its itemized reasons.

        Raises:
            InvalidReferenceError: If the KRS or anything it references
                does not exist.
            StudentInactiveError: If the student is not active.
            EnrollmentClosedError: If the add/drop period has ended and
                the submission would change the committed slots.
            InvalidTransitionError: If the KRS cannot be submitted.
            SubmissionRetryExhaustedError: If concurrent writers kept
                invalidating the commit.
        """
        for attempt in range(1, self.max_commit_attempts + 1):
            krs = await self.get_krs(krs_id)

            if krs.status == KRSStatus.COMMITTED:
                logger.debug("KRS already committed, nothing to do: krs=%s", krs_id)
                return SubmissionResult(krs=krs)

            if not krs.can_transition_to(KRSStatus.SUBMITTED):
                raise InvalidTransitionError(
                    f"KRS {krs_id} cannot be submitted from {krs.status.value}",
                    {"krs_id": krs_id, "status": krs.status.value},
                )

            term = self._get_term(krs.term_code)
            if not _restores_last_commit(krs):
                self._ensure_open(term)

            candidate = krs.copy(status=KRSStatus.SUBMITTED)
            context = await self._load_context(candidate)
            if not context.student.is_active:
                raise StudentInactiveError(
                    f"Student {context.student.id} is {context.student.status.value}",
                    {"student_id": context.student.id},
                )

            reasons = self._evaluate(candidate, context, term)
            if reasons:
                return self._reject(candidate, reasons)

            reserve = candidate.slots_to_reserve()
            release = candidate.slots_to_release()
            committed = candidate.copy(
                status=KRSStatus.COMMITTED,
                reserved_slot_ids=frozenset(candidate.slot_ids),
                committed_at=self._clock(),
                updated_at=self._clock(),
            )

            try:
                outcome = await self.repository.commit_krs(
                    committed,
                    expected_version=krs.version,
                    reserve=reserve,
                    release=release,
                )
            except ConcurrentModificationError as e:
                logger.warning(
                    "KRS commit collided, retrying: krs=%s, attempt=%d/%d, error=%s",
                    krs_id,
                    attempt,
                    self.max_commit_attempts,
                    e.message,
                )
                continue

            if not outcome.committed:
                reasons = [
                    self._seat_reason(context.slots[slot_id])
                    for slot_id in outcome.unavailable_slot_ids
                ]
                return self._reject(candidate, reasons)

            logger.info(
                "KRS committed: krs=%s, student=%s, term=%s, items=%d, reserved=%d, released=%d",
                krs_id,
                krs.student_id,
                krs.term_code,
                len(committed.items),
                len(reserve),
                len(release),
            )
            return SubmissionResult(krs=outcome.krs or committed)

        logger.error(
            "KRS commit failed after %d attempts: krs=%s",
            self.max_commit_attempts,
            krs_id,
        )
        raise SubmissionRetryExhaustedError(krs_id, self.max_commit_attempts)

    def _evaluate(
        self,
        krs: KRS,
        context: _SubmissionContext,
        term: TermConfig,
    ) -> list[RejectionReason]:
        """Run every rule and collect the failures."""
        slots = [context.slots[slot_id] for slot_id in krs.slot_ids]
        item_courses = [context.courses[slot.course_id] for slot in slots]
        reasons: list[RejectionReason] = []

        # Time conflicts
        for conflict in self.conflict_detector.find_conflicts(slots):
            reasons.append(
                RejectionReason(
                    kind=ReasonKind.CONFLICT_DETECTED,
                    item=conflict.first_slot_id,
                    detail=f"Schedule conflict: {conflict.describe()}",
                    context={
                        "slot_ids": list(conflict.slot_ids),
                        "day": conflict.day.value,
                        "overlap_start": format_clock(conflict.overlap_start),
                        "overlap_end": format_clock(conflict.overlap_end),
                    },
                )
            )

        # Same course taken twice
        first_slot_by_course: dict[str, str] = {}
        for slot in slots:
            if slot.course_id in first_slot_by_course:
                course = context.courses[slot.course_id]
                reasons.append(
                    RejectionReason(
                        kind=ReasonKind.DUPLICATE_COURSE,
                        item=slot.id,
                        detail=f"{course.code} is already taken in slot {first_slot_by_course[slot.course_id]}",
                        context={
                            "course_id": course.id,
                            "slot_ids": [first_slot_by_course[slot.course_id], slot.id],
                        },
                    )
                )
            else:
                first_slot_by_course[slot.course_id] = slot.id

        # Prerequisites
        checks = self.prerequisite_validator.check_many(
            item_courses, context.records, context.waivers
        )
        for check in checks:
            if check.satisfied:
                continue
            course = context.courses[check.course_id]
            reasons.append(
                RejectionReason(
                    kind=ReasonKind.PREREQUISITE_MISSING,
                    item=first_slot_by_course[check.course_id],
                    detail=f"{course.code} requires {', '.join(check.missing)}",
                    context={
                        "course_id": course.id,
                        "missing_course_ids": list(check.missing),
                    },
                )
            )

        # Seats, only for slots that do not hold one yet
        reserve = set(krs.slots_to_reserve())
        for slot in self.capacity_guard.unavailable_slots(s for s in slots if s.id in reserve):
            reasons.append(self._seat_reason(slot))

        # Credit ceiling
        max_credits = CreditPolicy(term).resolve(context.student, context.records, context.courses)
        credit_check = self.capacity_guard.check_credits(item_courses, max_credits)
        if not credit_check.passed:
            reasons.append(
                RejectionReason(
                    kind=ReasonKind.CREDIT_EXCEEDED,
                    item=None,
                    detail=(
                        f"{credit_check.total_credits} SKS requested, maximum is "
                        f"{credit_check.max_credits} ({credit_check.overflow} over)"
                    ),
                    context={
                        "total_credits": credit_check.total_credits,
                        "max_credits": credit_check.max_credits,
                        "overflow": credit_check.overflow,
                    },
                )
            )

        return reasons

    @staticmethod
    def _seat_reason(slot: ScheduleSlot) -> RejectionReason:
        return RejectionReason(
            kind=ReasonKind.SEAT_UNAVAILABLE,
            item=slot.id,
            detail=f"No seat left in slot {slot.id} ({slot.describe_time()}, room {slot.room})",
            context={"capacity": slot.capacity, "seats_taken": slot.seats_taken},
        )

    def _reject(self, candidate: KRS, reasons: list[RejectionReason]) -> SubmissionResult:
        logger.info(
            "KRS rejected: krs=%s, student=%s, reasons=%s",
            candidate.id,
            candidate.student_id,
            sorted({reason.kind.value for reason in reasons}),
        )
        return SubmissionResult(krs=candidate.copy(status=KRSStatus.REJECTED), reasons=reasons)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load_context(self, krs: KRS) -> _SubmissionContext:
        """Read everything validation needs.

        Raises:
            InvalidReferenceError: If the student, a slot or a course
                does not exist.
        """
        student = await self.repository.get_student(krs.student_id)
        if student is None:
            raise InvalidReferenceError("student", krs.student_id)

        slots = await self.repository.get_slots(krs.slot_ids)
        for slot_id in krs.slot_ids:
            if slot_id not in slots:
                raise InvalidReferenceError("schedule slot", slot_id)

        records = await self.repository.get_completion_records(student.id)
        waivers = await self.repository.get_waivers(student.id)

        item_course_ids = {slot.course_id for slot in slots.values()}
        courses = await self.repository.get_courses(
            item_course_ids | {record.course_id for record in records}
        )
        for course_id in sorted(item_course_ids):
            if course_id not in courses:
                raise InvalidReferenceError("course", course_id)

        return _SubmissionContext(
            student=student,
            slots=slots,
            courses=courses,
            records=records,
            waivers=waivers,
        )

    async def _get_editable_krs(self, krs_id: str) -> KRS:
        krs = await self.get_krs(krs_id)
        if not krs.is_editable:
            raise InvalidTransitionError(
                f"KRS {krs_id} is {krs.status.value}; amend it before making changes",
                {"krs_id": krs_id, "status": krs.status.value},
            )
        self._ensure_open(self._get_term(krs.term_code))
        await self._get_active_student(krs.student_id)
        return krs

    async def _get_active_student(self, student_id: str) -> Student:
        student = await self.repository.get_student(student_id)
        if student is None:
            raise InvalidReferenceError("student", student_id)
        if not student.is_active:
            raise StudentInactiveError(
                f"Student {student_id} is {student.status.value}",
                {"student_id": student_id},
            )
        return student

    def _get_term(self, term_code: str) -> TermConfig:
        term = self.terms.get(term_code)
        if term is None:
            raise InvalidReferenceError("term", term_code)
        return term

    def _ensure_open(self, term: TermConfig) -> None:
        if not term.is_open(self._clock()):
            raise EnrollmentClosedError(
                f"Add/drop period for term {term.code} has ended",
                {"term_code": term.code, "deadline": term.add_drop_deadline.isoformat()},
            )


def _restores_last_commit(krs: KRS) -> bool:
    """Whether an amended draft still holds exactly its committed slots."""
    return krs.committed_at is not None and set(krs.slot_ids) == krs.reserved_slot_ids
