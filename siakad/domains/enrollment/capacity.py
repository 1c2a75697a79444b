# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Seat capacity and credit (SKS) ceiling checks.

The seat check here is the read-only pre-check made during validation;
the authoritative check happens again under lock when the repository
commits the KRS.

The credit ceiling comes from the term configuration: the program
override (or the term default) is the base, and when GPA tiers are
configured the tier matching the student's previous-term IPS can lower
it further.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from siakad.core.config.terms import TermConfig
from siakad.domains.enrollment.models import CompletionRecord, Course, ScheduleSlot, Student


@dataclass(frozen=True)
class CreditCheck:
    """Outcome of the credit ceiling check.

    Attributes:
        total_credits: SKS requested.
        max_credits: Ceiling that applies to the student.
        overflow: SKS above the ceiling, zero when within it.
    """

    total_credits: int
    max_credits: int

    @property
    def overflow(self) -> int:
        return max(0, self.total_credits - self.max_credits)

    @property
    def passed(self) -> bool:
        return self.total_credits <= self.max_credits


class CapacityGuard:
    """Seat and credit checks for a proposed KRS."""

    def unavailable_slots(self, slots: Iterable[ScheduleSlot]) -> list[ScheduleSlot]:
        """Slots with no free seat left."""
        return [slot for slot in slots if not slot.has_free_seat]

    def check_credits(self, courses: Iterable[Course], max_credits: int) -> CreditCheck:
        """Sum SKS over the courses (one entry per KRS item) against a ceiling."""
        total = sum(course.credits for course in courses)
        return CreditCheck(total_credits=total, max_credits=max_credits)


class CreditPolicy:
    """Resolves a student's credit ceiling for a term.

    Attributes:
        term: Term configuration supplying the ceilings.
    """

    def __init__(self, term: TermConfig) -> None:
        self.term = term

    def base_ceiling(self, student: Student) -> int:
        """Program override, or the term default."""
        return self.term.program_max_credits.get(student.program_id, self.term.max_credits)

    def resolve(
        self,
        student: Student,
        records: Iterable[CompletionRecord],
        courses: Mapping[str, Course],
    ) -> int:
        """Credit ceiling for the student in this term.

        Args:
            student: Enrolling student.
            records: The student's completion records.
            courses: Catalog lookup for the recorded courses' credits.

        Returns:
            Maximum SKS the student may take.
        """
        ceiling = self.base_ceiling(student)
        if not self.term.gpa_tiers:
            return ceiling

        gpa = previous_term_gpa(records, courses, before_term=self.term.code)
        if gpa is None:
            return ceiling

        for tier in self.term.gpa_tiers:
            if gpa >= tier.min_gpa:
                return min(ceiling, tier.max_credits)
        # Below every threshold: the lowest tier still applies
        return min(ceiling, self.term.gpa_tiers[-1].max_credits)


def previous_term_gpa(
    records: Iterable[CompletionRecord],
    courses: Mapping[str, Course],
    before_term: str,
) -> float | None:
    """IPS of the most recent graded term before the given one.

    Args:
        records: Completion records.
        courses: Catalog lookup for credits.
        before_term: Only terms earlier than this code are considered.

    Returns:
        SKS-weighted grade point average rounded to two decimals, or None
        when the student has no graded records in an earlier term.
    """
    graded = [
        r for r in records
        if r.is_graded and r.term_code < before_term and r.course_id in courses
    ]
    if not graded:
        return None

    last_term = max(r.term_code for r in graded)
    term_records = [r for r in graded if r.term_code == last_term]
    credits = sum(courses[r.course_id].credits for r in term_records)
    if credits == 0:
        return None

    points = sum(courses[r.course_id].credits * r.grade.points for r in term_records)
    return round(points / credits, 2)
