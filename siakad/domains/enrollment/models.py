# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the enrollment domain.

This module defines the dataclasses and enums the KRS engine works with:
- Students, courses and schedule slots (catalog)
- Completion records and grades (prerequisite history)
- KRS records with their lifecycle state machine
- Rejection reasons and submission results

The engine never sees ORM objects; persistence adapters map their rows
to these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, time
from enum import Enum
from typing import Any

from siakad.utils.datetime import format_clock, utc_now


class StudentStatus(str, Enum):
    """Administrative status of a student."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"


class DayOfWeek(str, Enum):
    """Day a schedule slot meets on."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def index(self) -> int:
        """Position in the week, Monday first."""
        return list(DayOfWeek).index(self)


class Grade(str, Enum):
    """Final letter grade on the campus scale."""

    A = "A"
    AB = "AB"
    B = "B"
    BC = "BC"
    C = "C"
    D = "D"
    E = "E"

    @property
    def points(self) -> float:
        """Grade points used for IPS/IPK."""
        return _GRADE_POINTS[self]

    def is_at_least(self, minimum: Grade) -> bool:
        """Check whether this grade is at or above another."""
        return self.points >= minimum.points


_GRADE_POINTS: dict[Grade, float] = {
    Grade.A: 4.0,
    Grade.AB: 3.5,
    Grade.B: 3.0,
    Grade.BC: 2.5,
    Grade.C: 2.0,
    Grade.D: 1.0,
    Grade.E: 0.0,
}


class KRSStatus(str, Enum):
    """KRS lifecycle states.

    - DRAFT: Editable by the student
    - SUBMITTED: Being validated (transient, never persisted)
    - COMMITTED: Accepted, seats reserved
    - REJECTED: Validation failed; the stored record stays DRAFT
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"
    COMMITTED = "committed"
    REJECTED = "rejected"


# Allowed KRS state transitions
KRS_TRANSITIONS: dict[KRSStatus, frozenset[KRSStatus]] = {
    KRSStatus.DRAFT: frozenset({KRSStatus.SUBMITTED}),
    KRSStatus.SUBMITTED: frozenset({KRSStatus.COMMITTED, KRSStatus.REJECTED}),
    KRSStatus.REJECTED: frozenset({KRSStatus.DRAFT}),
    KRSStatus.COMMITTED: frozenset({KRSStatus.DRAFT}),
}


class ReasonKind(str, Enum):
    """Kinds of rule failures reported by a rejected submission."""

    CONFLICT_DETECTED = "conflict_detected"
    PREREQUISITE_MISSING = "prerequisite_missing"
    SEAT_UNAVAILABLE = "seat_unavailable"
    CREDIT_EXCEEDED = "credit_exceeded"
    DUPLICATE_COURSE = "duplicate_course"


@dataclass(frozen=True)
class Student:
    """A student as seen by the enrollment engine.

    Attributes:
        id: Student identifier (NIM).
        program_id: Program of study reference.
        enrollment_year: Year the student entered.
        status: Administrative status.
    """

    id: str
    program_id: str
    enrollment_year: int
    status: StudentStatus = StudentStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE


@dataclass(frozen=True)
class Course:
    """A catalog course.

    Attributes:
        id: Course identifier.
        code: Course code (e.g. IF2110).
        name: Course name.
        credits: Credit hours (SKS).
        semester_level: Recommended semester.
        prerequisite_ids: Direct prerequisite course ids.
    """

    id: str
    code: str
    name: str
    credits: int
    semester_level: int = 1
    prerequisite_ids: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.credits < 0:
            raise ValueError(f"Course {self.code} has negative credits")
        if self.id in self.prerequisite_ids:
            raise ValueError(f"Course {self.code} cannot require itself")


@dataclass(frozen=True)
class ScheduleSlot:
    """A course offering: day, time, room, instructor and seats.

    Times form the half-open interval ``[start_time, end_time)``.
    """

    id: str
    course_id: str
    instructor_id: str
    day: DayOfWeek
    start_time: time
    end_time: time
    room: str
    capacity: int
    seats_taken: int = 0

    def __post_init__(self) -> None:
        if self.start_time >= self.end_time:
            raise ValueError(f"Slot {self.id} must start before it ends")
        if self.capacity < 0:
            raise ValueError(f"Slot {self.id} has negative capacity")
        if not 0 <= self.seats_taken <= self.capacity:
            raise ValueError(
                f"Slot {self.id} seats_taken {self.seats_taken} outside 0..{self.capacity}"
            )

    @property
    def has_free_seat(self) -> bool:
        return self.seats_taken < self.capacity

    def describe_time(self) -> str:
        """Human-readable meeting time, e.g. ``monday 08:00-10:00``."""
        return f"{self.day.value} {format_clock(self.start_time)}-{format_clock(self.end_time)}"


@dataclass(frozen=True)
class CompletionRecord:
    """A course the student has taken.

    Attributes:
        student_id: Student reference.
        course_id: Course reference.
        grade: Final grade, None while the course is in progress.
        term_code: Term the course was taken in.
    """

    student_id: str
    course_id: str
    grade: Grade | None
    term_code: str

    @property
    def is_graded(self) -> bool:
        return self.grade is not None


@dataclass(frozen=True)
class KRSItem:
    """One schedule slot on a KRS."""

    krs_id: str
    schedule_slot_id: str


@dataclass
class KRS:
    """A student's course-registration record for one term.

    Attributes:
        id: KRS identifier.
        student_id: Owning student.
        term_code: Academic term, ``YYYY/S``.
        status: Lifecycle state.
        items: Slots in insertion order.
        version: Optimistic concurrency counter, bumped on every write.
        reserved_slot_ids: Slots whose seats are held by the last commit.
        committed_at: When the record was last committed.
    """

    id: str
    student_id: str
    term_code: str
    status: KRSStatus = KRSStatus.DRAFT
    items: list[KRSItem] = field(default_factory=list)
    version: int = 0
    reserved_slot_ids: frozenset[str] = frozenset()
    committed_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def slot_ids(self) -> list[str]:
        """Slot ids of all items, in order."""
        return [item.schedule_slot_id for item in self.items]

    def has_slot(self, slot_id: str) -> bool:
        return any(item.schedule_slot_id == slot_id for item in self.items)

    @property
    def is_editable(self) -> bool:
        return self.status == KRSStatus.DRAFT

    def can_transition_to(self, status: KRSStatus) -> bool:
        return status in KRS_TRANSITIONS.get(self.status, frozenset())

    def copy(self, **changes: Any) -> KRS:
        """Return an independent copy with optional field changes."""
        changes.setdefault("items", list(self.items))
        return replace(self, **changes)

    def slots_to_reserve(self) -> list[str]:
        """Slots on the record that do not hold a seat yet."""
        return [sid for sid in self.slot_ids if sid not in self.reserved_slot_ids]

    def slots_to_release(self) -> list[str]:
        """Held slots that are no longer on the record."""
        current = set(self.slot_ids)
        return sorted(sid for sid in self.reserved_slot_ids if sid not in current)


@dataclass(frozen=True)
class RejectionReason:
    """One itemized rule failure.

    Attributes:
        kind: Which rule failed.
        item: Affected schedule slot id, None for KRS-wide failures.
        detail: Human-readable explanation.
        context: Machine-readable specifics (slot ids, missing courses,
            overflow amount).
    """

    kind: ReasonKind
    item: str | None
    detail: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "kind": self.kind.value,
            "item": self.item,
            "detail": self.detail,
            "context": self.context,
        }


@dataclass
class SubmissionResult:
    """Outcome of submitting a KRS.

    Either ``krs`` is committed and ``reasons`` is empty, or ``krs`` is
    the rejected candidate and ``reasons`` lists every failed rule.
    """

    krs: KRS
    reasons: list[RejectionReason] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.reasons and self.krs.status == KRSStatus.COMMITTED

    def reasons_of(self, kind: ReasonKind) -> list[RejectionReason]:
        return [reason for reason in self.reasons if reason.kind == kind]


@dataclass(frozen=True)
class CommitOutcome:
    """Result of the locked commit step in a repository.

    ``committed`` is False when at least one slot to reserve turned out to
    be full under lock; nothing was written in that case.
    """

    committed: bool
    krs: KRS | None = None
    unavailable_slot_ids: tuple[str, ...] = ()
