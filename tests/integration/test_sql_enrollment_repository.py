# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the SQL enrollment repository and connection module."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from siakad.core.config import DatabaseSettings, Settings
from siakad.domains.enrollment import (
    KRS,
    ConcurrentModificationError,
    Course,
    DayOfWeek,
    EnrollmentService,
    InvalidReferenceError,
    KRSItem,
    KRSStatus,
    PrerequisiteCycleError,
    ReasonKind,
    Student,
)
from siakad.infrastructure.database import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_engine,
    get_sessionmaker,
    init_database,
)

FIXED_NOW = datetime(2025, 9, 1, 8, 0, tzinfo=timezone.utc)


def new_krs(krs_id: str = "krs-1", student_id: str = "13521001") -> KRS:
    return KRS(id=krs_id, student_id=student_id, term_code="2025/1")


@pytest.mark.integration
class TestCatalog:
    """Tests for catalog reads and maintenance."""

    @pytest.mark.asyncio
    async def test_reads_seeded_catalog(self, sql_repository) -> None:
        student = await sql_repository.get_student("13521001")
        courses = await sql_repository.get_courses(["IF2211", "IF1210", "NOPE"])
        slot = await sql_repository.get_slot("IF2120-A")
        records = await sql_repository.get_completion_records("13521001")

        assert student.program_id == "TI-S1"
        assert set(courses) == {"IF2211", "IF1210"}
        assert courses["IF2211"].prerequisite_ids == frozenset({"IF2110", "IF2120"})
        assert slot.day == DayOfWeek.MONDAY
        assert slot.describe_time() == "monday 10:00-12:00"
        assert slot.capacity == 1
        assert [(r.course_id, r.grade.value) for r in records] == [("IF1210", "B")]

    @pytest.mark.asyncio
    async def test_unknown_ids(self, sql_repository) -> None:
        assert await sql_repository.get_student("99999999") is None
        assert await sql_repository.get_slots([]) == {}
        assert await sql_repository.get_krs("missing") is None

    @pytest.mark.asyncio
    async def test_waivers(self, sql_repository) -> None:
        await sql_repository.add_waiver("13521001", "IF2211", granted_by="DSN-01")

        assert await sql_repository.get_waivers("13521001") == {"IF2211"}
        assert await sql_repository.get_waivers("13521003") == set()

    @pytest.mark.asyncio
    async def test_prerequisite_cycle_refused(self, sql_repository) -> None:
        with pytest.raises(PrerequisiteCycleError):
            await sql_repository.add_course(
                Course(
                    id="IF1210",
                    code="IF1210",
                    name="Dasar Pemrograman",
                    credits=3,
                    prerequisite_ids=frozenset({"IF2211"}),
                )
            )

        course = await sql_repository.get_course("IF1210")
        assert course.prerequisite_ids == frozenset()

    @pytest.mark.asyncio
    async def test_replacing_course_replaces_prerequisites(self, sql_repository) -> None:
        await sql_repository.add_course(
            Course(
                id="IF2211",
                code="IF2211",
                name="Strategi Algoritma",
                credits=4,
                prerequisite_ids=frozenset({"IF2110"}),
            )
        )

        course = await sql_repository.get_course("IF2211")
        assert course.prerequisite_ids == frozenset({"IF2110"})

    @pytest.mark.asyncio
    async def test_unknown_prerequisite(self, sql_repository) -> None:
        with pytest.raises(InvalidReferenceError):
            await sql_repository.add_course(
                Course(id="IF4000", code="IF4000", name="x", credits=2, prerequisite_ids=frozenset({"NOPE"}))
            )

    @pytest.mark.asyncio
    async def test_slot_needs_known_course(self, sql_repository, make_slot) -> None:
        with pytest.raises(InvalidReferenceError):
            await sql_repository.add_slot(make_slot("X-A", "NOPE", DayOfWeek.MONDAY, (8, 0), (9, 0)))


@pytest.mark.integration
class TestKRSPersistence:
    """Tests for KRS create and versioned save."""

    @pytest.mark.asyncio
    async def test_create_and_load(self, sql_repository) -> None:
        created = await sql_repository.create_krs(new_krs())

        loaded = await sql_repository.get_krs("krs-1")
        found = await sql_repository.find_krs("13521001", "2025/1")

        assert created.version == 1
        assert loaded.version == 1
        assert loaded.status == KRSStatus.DRAFT
        assert loaded.created_at.tzinfo is not None
        assert found.id == "krs-1"

    @pytest.mark.asyncio
    async def test_one_krs_per_student_and_term(self, sql_repository) -> None:
        await sql_repository.create_krs(new_krs("krs-1"))

        with pytest.raises(ConcurrentModificationError):
            await sql_repository.create_krs(new_krs("krs-2"))

    @pytest.mark.asyncio
    async def test_save_keeps_item_order(self, sql_repository) -> None:
        krs = await sql_repository.create_krs(new_krs())
        krs.items = [
            KRSItem(krs_id=krs.id, schedule_slot_id="KU1001-A"),
            KRSItem(krs_id=krs.id, schedule_slot_id="IF2110-B"),
        ]

        saved = await sql_repository.save_krs(krs, expected_version=1)

        assert saved.version == 2
        assert (await sql_repository.get_krs(krs.id)).slot_ids == ["KU1001-A", "IF2110-B"]

    @pytest.mark.asyncio
    async def test_stale_save_is_refused(self, sql_repository) -> None:
        krs = await sql_repository.create_krs(new_krs())
        await sql_repository.save_krs(krs, expected_version=1)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await sql_repository.save_krs(krs, expected_version=1)

        assert exc_info.value.details["actual_version"] == 2

    @pytest.mark.asyncio
    async def test_save_unknown_krs(self, sql_repository) -> None:
        with pytest.raises(InvalidReferenceError):
            await sql_repository.save_krs(new_krs("ghost"), expected_version=1)


@pytest.mark.integration
class TestCommit:
    """Tests for the locked seat commit."""

    @pytest.mark.asyncio
    async def test_commit_reserves_and_records_reservations(self, sql_repository) -> None:
        krs = await sql_repository.create_krs(new_krs())
        committed = krs.copy(
            status=KRSStatus.COMMITTED,
            items=[KRSItem(krs_id=krs.id, schedule_slot_id="IF2120-A")],
            reserved_slot_ids=frozenset({"IF2120-A"}),
            committed_at=FIXED_NOW,
        )

        outcome = await sql_repository.commit_krs(
            committed, expected_version=1, reserve=["IF2120-A"], release=[]
        )

        assert outcome.committed
        loaded = await sql_repository.get_krs(krs.id)
        assert loaded.status == KRSStatus.COMMITTED
        assert loaded.version == 2
        assert loaded.reserved_slot_ids == frozenset({"IF2120-A"})
        assert loaded.committed_at == FIXED_NOW
        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 1

    @pytest.mark.asyncio
    async def test_full_slot_aborts_whole_commit(self, sql_repository) -> None:
        krs = await sql_repository.create_krs(new_krs())
        committed = krs.copy(
            status=KRSStatus.COMMITTED,
            items=[
                KRSItem(krs_id=krs.id, schedule_slot_id="IF2120-A"),
                KRSItem(krs_id=krs.id, schedule_slot_id="IF3170-A"),
            ],
        )

        outcome = await sql_repository.commit_krs(
            committed, expected_version=1, reserve=["IF2120-A", "IF3170-A"], release=[]
        )

        assert not outcome.committed
        assert outcome.unavailable_slot_ids == ("IF3170-A",)
        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 0
        loaded = await sql_repository.get_krs(krs.id)
        assert loaded.status == KRSStatus.DRAFT
        assert loaded.version == 1

    @pytest.mark.asyncio
    async def test_stale_commit_touches_no_seat(self, sql_repository) -> None:
        krs = await sql_repository.create_krs(new_krs())

        with pytest.raises(ConcurrentModificationError):
            await sql_repository.commit_krs(
                krs.copy(status=KRSStatus.COMMITTED), expected_version=5, reserve=["IF2120-A"], release=[]
            )

        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 0


@pytest.mark.integration
class TestEnrollmentOverSQL:
    """End-to-end enrollment against the SQL repository."""

    @pytest.fixture
    def service(self, sql_repository, term_calendar) -> EnrollmentService:
        return EnrollmentService(sql_repository, term_calendar, clock=lambda: FIXED_NOW)

    @pytest.mark.asyncio
    async def test_submit_amend_and_release(self, service, sql_repository) -> None:
        krs = await service.create_draft("13521001", "2025/1")
        krs = await service.add_item(krs.id, "IF2110-B")
        krs = await service.add_item(krs.id, "IF2120-A")

        result = await service.submit(krs.id)

        assert result.accepted
        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 1

        await service.amend(krs.id)
        await service.remove_item(krs.id, "IF2120-A")
        result = await service.submit(krs.id)

        assert result.accepted
        assert result.krs.reserved_slot_ids == frozenset({"IF2110-B"})
        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 0
        assert (await sql_repository.get_slot("IF2110-B")).seats_taken == 1

    @pytest.mark.asyncio
    async def test_last_seat_goes_to_first_committer(self, service, sql_repository) -> None:
        first = await service.create_draft("13521001", "2025/1")
        await service.add_item(first.id, "IF2120-A")
        second = await service.create_draft("13521003", "2025/1")
        await service.add_item(second.id, "IF2120-A")

        assert (await service.submit(first.id)).accepted
        rejected = await service.submit(second.id)

        assert not rejected.accepted
        assert [r.kind for r in rejected.reasons] == [ReasonKind.SEAT_UNAVAILABLE]
        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 1
        assert (await service.get_krs(second.id)).status == KRSStatus.DRAFT

    @pytest.mark.asyncio
    async def test_concurrent_submits_share_last_seat(self, service, sql_repository) -> None:
        drafts = []
        for i in range(5):
            student_id = f"1352120{i}"
            await sql_repository.add_student(Student(id=student_id, program_id="TI-S1", enrollment_year=2023))
            krs = await service.create_draft(student_id, "2025/1")
            drafts.append(await service.add_item(krs.id, "IF2120-A"))

        results = await asyncio.gather(*(service.submit(krs.id) for krs in drafts))

        rejected = [r for r in results if not r.accepted]
        assert sum(r.accepted for r in results) == 1
        assert len(rejected) == 4
        assert all([reason.kind for reason in r.reasons] == [ReasonKind.SEAT_UNAVAILABLE] for r in rejected)
        assert (await sql_repository.get_slot("IF2120-A")).seats_taken == 1

    @pytest.mark.asyncio
    async def test_rejection_writes_nothing(self, service, sql_repository) -> None:
        krs = await service.create_draft("13521001", "2025/1")
        await service.add_item(krs.id, "IF1210-A")
        await service.add_item(krs.id, "IF2110-A")

        result = await service.submit(krs.id)

        assert result.reasons_of(ReasonKind.CONFLICT_DETECTED)
        stored = await sql_repository.get_krs(krs.id)
        assert stored.status == KRSStatus.DRAFT
        assert stored.version == 3
        assert (await sql_repository.get_slot("IF1210-A")).seats_taken == 0


@pytest.mark.integration
class TestDatabaseLifecycle:
    """Tests for module-level engine management."""

    @pytest.fixture
    def settings(self, tmp_path: Path) -> Settings:
        return Settings(
            debug=False,
            database=DatabaseSettings(url_override=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}"),
        )

    @pytest.mark.asyncio
    async def test_init_check_and_close(self, settings: Settings) -> None:
        await init_database(settings)

        try:
            assert get_engine() is not None
            assert await check_database_connection() is True
        finally:
            await close_database()

        assert await check_database_connection() is False
        with pytest.raises(DatabaseError) as exc_info:
            get_engine()

        assert "not initialized" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_sessionmaker_requires_init(self) -> None:
        with pytest.raises(DatabaseError):
            get_sessionmaker()
