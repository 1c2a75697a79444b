# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- A small informatics catalog (students, courses, schedule slots)
- A term calendar with an open, a closed and a GPA-tiered term
- An enrollment service over the in-memory repository
"""

from datetime import datetime, time, timezone

import pytest

from siakad.core.config import TermCalendar, build_term_calendar
from siakad.domains.enrollment import (
    CompletionRecord,
    Course,
    DayOfWeek,
    EnrollmentService,
    Grade,
    ScheduleSlot,
    Student,
    StudentStatus,
)
from siakad.infrastructure.memory import InMemoryEnrollmentRepository

# Inside the add/drop period of 2025/1
FIXED_NOW = datetime(2025, 9, 1, 8, 0, tzinfo=timezone.utc)

ACTIVE_STUDENT = "13521001"
INACTIVE_STUDENT = "13521002"
SI_STUDENT = "13521003"

OPEN_TERM = "2025/1"
CLOSED_TERM = "2024/1"
TIERED_TERM = "2025/2"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (database or HTTP stack)"
    )


# =============================================================================
# Catalog Fixtures
# =============================================================================


@pytest.fixture
def term_calendar() -> TermCalendar:
    """Provide a term calendar for tests."""
    return build_term_calendar(
        {
            "defaults": {"max_credits": 24},
            "terms": {
                OPEN_TERM: {
                    "program_max_credits": {"SI-S1": 20},
                    "add_drop_deadline": "2025-09-19T23:59:59+00:00",
                },
                CLOSED_TERM: {
                    "add_drop_deadline": "2024-09-20T23:59:59+00:00",
                },
                TIERED_TERM: {
                    "gpa_tiers": [
                        {"min_gpa": 3.0, "max_credits": 24},
                        {"min_gpa": 2.5, "max_credits": 21},
                        {"min_gpa": 0.0, "max_credits": 15},
                    ],
                },
            },
        }
    )


def _slot(
    slot_id: str,
    course_id: str,
    day: DayOfWeek,
    start: tuple[int, int],
    end: tuple[int, int],
    capacity: int = 40,
    seats_taken: int = 0,
    room: str = "7602",
) -> ScheduleSlot:
    return ScheduleSlot(
        id=slot_id,
        course_id=course_id,
        instructor_id="DSN-01",
        day=day,
        start_time=time(*start),
        end_time=time(*end),
        room=room,
        capacity=capacity,
        seats_taken=seats_taken,
    )


@pytest.fixture
def catalog() -> dict[str, list]:
    """Provide a small informatics catalog as seed data.

    Slots:
        IF1210-A  Monday 08:00-10:00
        IF2110-A  Monday 09:00-11:00 (overlaps IF1210-A)
        IF2110-B  Tuesday 08:00-10:00
        IF2120-A  Monday 10:00-12:00 (touches IF1210-A), one seat
        IF2211-A  Wednesday 13:00-15:00
        IF3170-A  Thursday 08:00-10:00, full
        KU1001-A  Friday 07:00-10:00
    """
    return {
        "students": [
            Student(id=ACTIVE_STUDENT, program_id="TI-S1", enrollment_year=2023),
            Student(
                id=INACTIVE_STUDENT,
                program_id="TI-S1",
                enrollment_year=2019,
                status=StudentStatus.INACTIVE,
            ),
            Student(id=SI_STUDENT, program_id="SI-S1", enrollment_year=2023),
        ],
        # Prerequisites before the courses that need them
        "courses": [
            Course(id="IF1210", code="IF1210", name="Dasar Pemrograman", credits=3),
            Course(id="IF2120", code="IF2120", name="Matematika Diskrit", credits=3),
            Course(
                id="IF2110",
                code="IF2110",
                name="Algoritma dan Struktur Data",
                credits=3,
                semester_level=3,
                prerequisite_ids=frozenset({"IF1210"}),
            ),
            Course(
                id="IF2211",
                code="IF2211",
                name="Strategi Algoritma",
                credits=4,
                semester_level=4,
                prerequisite_ids=frozenset({"IF2110", "IF2120"}),
            ),
            Course(id="IF3170", code="IF3170", name="Inteligensi Artifisial", credits=3),
            Course(id="KU1001", code="KU1001", name="Pengantar Rekayasa", credits=6),
        ],
        "slots": [
            _slot("IF1210-A", "IF1210", DayOfWeek.MONDAY, (8, 0), (10, 0)),
            _slot("IF2110-A", "IF2110", DayOfWeek.MONDAY, (9, 0), (11, 0)),
            _slot("IF2110-B", "IF2110", DayOfWeek.TUESDAY, (8, 0), (10, 0)),
            _slot("IF2120-A", "IF2120", DayOfWeek.MONDAY, (10, 0), (12, 0), capacity=1),
            _slot("IF2211-A", "IF2211", DayOfWeek.WEDNESDAY, (13, 0), (15, 0), capacity=30),
            _slot("IF3170-A", "IF3170", DayOfWeek.THURSDAY, (8, 0), (10, 0), capacity=1, seats_taken=1),
            _slot("KU1001-A", "KU1001", DayOfWeek.FRIDAY, (7, 0), (10, 0), capacity=100),
        ],
        "records": [
            CompletionRecord(
                student_id=ACTIVE_STUDENT,
                course_id="IF1210",
                grade=Grade.B,
                term_code="2024/2",
            ),
        ],
    }


@pytest.fixture
def repository(catalog: dict[str, list]) -> InMemoryEnrollmentRepository:
    """Provide an in-memory repository seeded with the catalog."""
    repo = InMemoryEnrollmentRepository()
    for student in catalog["students"]:
        repo.add_student(student)
    for course in catalog["courses"]:
        repo.add_course(course)
    for slot in catalog["slots"]:
        repo.add_slot(slot)
    for record in catalog["records"]:
        repo.add_completion_record(record)
    return repo


@pytest.fixture
def enrollment_service(
    repository: InMemoryEnrollmentRepository,
    term_calendar: TermCalendar,
) -> EnrollmentService:
    """Provide an enrollment service with a fixed clock."""
    return EnrollmentService(repository, term_calendar, clock=lambda: FIXED_NOW)


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def make_slot():
    """Provide a schedule slot factory."""
    return _slot
