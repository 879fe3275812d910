"""
Praxis OS Backend: Course Models
=================================

What:  ORM models for courses, their lessons, the per-version lesson
       snapshots and patient enrollments.
How:   Publishing a course bumps `courses.version` and copies the current
       lessons into `course_lesson_snapshots` under that version. Enrollments
       remember the version they were enrolled in, so later edits to a course
       never change what an enrolled patient sees.

Course status lifecycle:
    entwurf  ──publish──▶  aktiv  ──archive──▶  archiviert (is_archived = true)
                            ▲ │
                            └─┘ publish again (new version)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from praxis.database import Base


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    beschreibung: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="entwurf",
        server_default=text("'entwurf'"),
        comment="entwurf, aktiv, archiviert",
    )
    # 0 until the first publish; every publish increments it by one
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    is_archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    invite_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    invite_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_courses_created_by", "created_by"),
    )

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, status='{self.status}', version={self.version})>"


class CourseLesson(Base):
    """Editable lesson of a course. Patients never read these directly."""

    __tablename__ = "course_lessons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    beschreibung: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    exercise_unit: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_course_lessons_course_id", "course_id"),
    )


class CourseLessonSnapshot(Base):
    """Frozen copy of a lesson as it was when `version` was published."""

    __tablename__ = "course_lesson_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    lesson_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    beschreibung: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    exercise_unit: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("lesson_id", "version", name="uq_course_lesson_snapshots_lesson_version"),
        Index("idx_course_lesson_snapshots_course_version", "course_id", "version"),
    )


class CourseEnrollment(Base):
    """
    A patient's participation in one course version.

    `completed_at` and `cancelled_at` are never both set; they are derived
    from `status` whenever the status changes.
    """

    __tablename__ = "course_enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    patient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="aktiv",
        server_default=text("'aktiv'"),
        comment="aktiv, abgeschlossen, abgebrochen",
    )
    enrolled_version: Mapped[int] = mapped_column(Integer, nullable=False)

    enrolled_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("course_id", "patient_id", name="uq_course_enrollments_course_patient"),
    )

    def to_dict(self) -> dict:
        """JSON-ready representation returned by the enrollment endpoints."""
        return {
            "id": str(self.id),
            "course_id": str(self.course_id),
            "patient_id": str(self.patient_id),
            "status": self.status,
            "enrolled_version": self.enrolled_version,
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
