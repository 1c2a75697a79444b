# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for catalog, student history and KRS records.

Tables:
- students: Enrolled students with program and status
- courses / course_prerequisites: Catalog and direct prerequisite edges
- schedule_slots: Course offerings with capacity and live seats_taken
- completion_records: Courses taken with their final grade
- prerequisite_waivers: Per-student prerequisite exemptions
- krs / krs_items / krs_reservations: KRS records, their slots, and
  the slots whose seats the last commit holds
"""

from datetime import datetime, time

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from siakad.infrastructure.database.models.base import Base, TimestampMixin


class StudentModel(Base, TimestampMixin):
    """A student (mahasiswa)."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    program_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    enrollment_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("status IN ('active','inactive','graduated')", name="status"),
    )


class CourseModel(Base, TimestampMixin):
    """A catalog course (mata kuliah)."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    semester_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    prerequisites: Mapped[list["CoursePrerequisiteModel"]] = relationship(
        foreign_keys="CoursePrerequisiteModel.course_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (CheckConstraint("credits >= 0", name="credits_non_negative"),)


class CoursePrerequisiteModel(Base):
    """Direct prerequisite edge: course requires prerequisite."""

    __tablename__ = "course_prerequisites"

    course_id: Mapped[str] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    prerequisite_id: Mapped[str] = mapped_column(
        ForeignKey("courses.id", ondelete="RESTRICT"), primary_key=True
    )

    __table_args__ = (
        CheckConstraint("course_id <> prerequisite_id", name="not_self"),
    )


class ScheduleSlotModel(Base, TimestampMixin):
    """A course offering (kelas) with its meeting time and seats."""

    __tablename__ = "schedule_slots"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    instructor_id: Mapped[str] = mapped_column(String(32), nullable=False)
    day: Mapped[str] = mapped_column(String(16), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    room: Mapped[str] = mapped_column(String(32), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    seats_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="time_order"),
        CheckConstraint("seats_taken >= 0 AND seats_taken <= capacity", name="seats_in_range"),
    )


class CompletionRecordModel(Base, TimestampMixin):
    """A course a student has taken, graded or in progress."""

    __tablename__ = "completion_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id: Mapped[str] = mapped_column(
        ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False
    )
    grade: Mapped[str | None] = mapped_column(String(2), nullable=True)
    term_code: Mapped[str] = mapped_column(String(8), nullable=False)


class PrerequisiteWaiverModel(Base, TimestampMixin):
    """Exempts a student from a course's prerequisites."""

    __tablename__ = "prerequisite_waivers"

    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), primary_key=True
    )
    course_id: Mapped[str] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    granted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class KRSModel(Base, TimestampMixin):
    """A KRS (Kartu Rencana Studi) for one student and term."""

    __tablename__ = "krs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    term_code: Mapped[str] = mapped_column(String(8), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    committed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["KRSItemModel"]] = relationship(
        back_populates="krs",
        cascade="all, delete-orphan",
        order_by="KRSItemModel.position",
        lazy="selectin",
    )
    reservations: Mapped[list["KRSReservationModel"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("student_id", "term_code", name="uq_krs_student_term"),
        CheckConstraint("status IN ('draft','committed')", name="stored_status"),
    )


class KRSItemModel(Base):
    """A schedule slot on a KRS."""

    __tablename__ = "krs_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    krs_id: Mapped[str] = mapped_column(
        ForeignKey("krs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    schedule_slot_id: Mapped[str] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    krs: Mapped[KRSModel] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("krs_id", "schedule_slot_id", name="uq_krs_items_krs_slot"),
    )


class KRSReservationModel(Base):
    """A seat held by a KRS from its last commit."""

    __tablename__ = "krs_reservations"

    krs_id: Mapped[str] = mapped_column(
        ForeignKey("krs.id", ondelete="CASCADE"), primary_key=True
    )
    schedule_slot_id: Mapped[str] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="RESTRICT"), primary_key=True
    )
