# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite validation and prerequisite graph checks.

Only direct prerequisites are checked: a course listing IF1210 as its
prerequisite needs IF1210 passed, not IF1210's own prerequisites. A
prerequisite is satisfied by any completion record with a grade at or
above the minimum passing grade; ungraded (in-progress) records never
satisfy it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from siakad.domains.enrollment.exceptions import PrerequisiteCycleError
from siakad.domains.enrollment.models import CompletionRecord, Course, Grade


@dataclass(frozen=True)
class PrerequisiteCheck:
    """Outcome of checking one course.

    Attributes:
        course_id: Course that was checked.
        missing: Prerequisite course ids not passed, sorted.
        waived: Whether a waiver exempted the course.
    """

    course_id: str
    missing: tuple[str, ...] = ()
    waived: bool = False

    @property
    def satisfied(self) -> bool:
        return not self.missing


class PrerequisiteValidator:
    """Checks a student's history against course prerequisites.

    Attributes:
        minimum_passing_grade: Lowest grade that counts as passed.
    """

    def __init__(self, minimum_passing_grade: Grade = Grade.C) -> None:
        self.minimum_passing_grade = minimum_passing_grade

    def passed_course_ids(self, records: Iterable[CompletionRecord]) -> set[str]:
        """Course ids the student has passed, counting the best of any retakes."""
        return {
            record.course_id
            for record in records
            if record.is_graded and record.grade.is_at_least(self.minimum_passing_grade)
        }

    def check(
        self,
        course: Course,
        records: Iterable[CompletionRecord],
        waivers: Iterable[str] = (),
    ) -> PrerequisiteCheck:
        """Check a single course.

        Args:
            course: Course the student wants to take.
            records: The student's completion records.
            waivers: Course ids whose prerequisites are waived for the student.

        Returns:
            PrerequisiteCheck listing missing prerequisites.
        """
        if course.id in set(waivers):
            return PrerequisiteCheck(course_id=course.id, waived=True)

        passed = self.passed_course_ids(records)
        missing = tuple(sorted(course.prerequisite_ids - passed))
        return PrerequisiteCheck(course_id=course.id, missing=missing)

    def check_many(
        self,
        courses: Iterable[Course],
        records: Iterable[CompletionRecord],
        waivers: Iterable[str] = (),
    ) -> list[PrerequisiteCheck]:
        """Check several courses against one history, each course once."""
        records = list(records)
        waived = set(waivers)
        passed = self.passed_course_ids(records)

        checks: list[PrerequisiteCheck] = []
        seen: set[str] = set()
        for course in courses:
            if course.id in seen:
                continue
            seen.add(course.id)
            if course.id in waived:
                checks.append(PrerequisiteCheck(course_id=course.id, waived=True))
            else:
                missing = tuple(sorted(course.prerequisite_ids - passed))
                checks.append(PrerequisiteCheck(course_id=course.id, missing=missing))
        return checks


def find_prerequisite_cycle(prerequisites: Mapping[str, Iterable[str]]) -> list[str] | None:
    """Find a cycle in a course -> prerequisites mapping.

    Args:
        prerequisites: Direct prerequisite ids per course id. Ids that only
            appear as prerequisites are treated as having none.

    Returns:
        The cycle as a list of course ids with the first id repeated at the
        end, or None if the graph is acyclic.
    """
    graph = {course_id: sorted(set(deps)) for course_id, deps in prerequisites.items()}
    white, grey, black = 0, 1, 2
    color: dict[str, int] = {}

    for root in sorted(graph):
        if color.get(root, white) != white:
            continue
        # Iterative DFS; path mirrors the grey nodes
        path: list[str] = [root]
        stack: list[tuple[str, int]] = [(root, 0)]
        color[root] = grey

        while stack:
            node, next_index = stack[-1]
            deps = graph.get(node, [])
            if next_index >= len(deps):
                stack.pop()
                path.pop()
                color[node] = black
                continue

            stack[-1] = (node, next_index + 1)
            dep = deps[next_index]
            state = color.get(dep, white)
            if state == grey:
                start = path.index(dep)
                return path[start:] + [dep]
            if state == white:
                color[dep] = grey
                path.append(dep)
                stack.append((dep, 0))

    return None


def ensure_acyclic(prerequisites: Mapping[str, Iterable[str]]) -> None:
    """Raise PrerequisiteCycleError if the mapping contains a cycle."""
    cycle = find_prerequisite_cycle(prerequisites)
    if cycle is not None:
        raise PrerequisiteCycleError(cycle)
