"""
Praxis OS Backend: Course Service
==================================

What:  Archive and publish courses, change enrollment status.
How:   Every write is conditioned on the state it expects to find, so a
       request that arrives late (already archived, version moved on) matches
       zero rows instead of overwriting someone else's change.
Who:   Called by routes/courses.py with the caller-scoped session.

Publish Flow:
    ┌───────────────┐    ┌──────────────┐    ┌─────────────────────┐    ┌─────────────┐
    │ Load course   │───▶│ Count lessons│───▶│ version = v+1 WHERE │───▶│ Snapshot    │
    │ (owner check) │    │ (need >= 1)  │    │ version = v         │    │ lessons @v+1│
    └───────────────┘    └──────────────┘    └─────────────────────┘    └─────────────┘
          │                    │                      │
     NOT_AUTHORIZED        NO_LESSONS          CONCURRENT_UPDATE

    The outcome is a typed PublishResult; the route maps each failure
    variant to a status without inspecting any error text.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.exceptions import NotFoundError, UpstreamError
from praxis.models.course import Course, CourseEnrollment, CourseLesson, CourseLessonSnapshot
from praxis.schemas.course import EnrollmentStatus
from praxis.services.auth_base import CallerIdentity

logger = logging.getLogger(__name__)


class PublishFailure(str, Enum):
    # Course missing, archived, or owned by someone else
    NOT_AUTHORIZED = "not_authorized"
    NO_LESSONS = "no_lessons"
    # Another publish bumped the version between read and write
    CONCURRENT_UPDATE = "concurrent_update"


@dataclass(frozen=True)
class PublishResult:
    version: Optional[int] = None
    failure: Optional[PublishFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def derive_enrollment_timestamps(
    status: EnrollmentStatus, now: datetime
) -> Dict[str, Optional[datetime]]:
    """
    Timestamp columns written together with a status change.

        abgeschlossen  → completed_at = now,  cancelled_at = None
        abgebrochen    → completed_at = None, cancelled_at = now
        aktiv          → completed_at = None, cancelled_at = None

    Completion and cancellation are mutually exclusive, so both columns are
    always written.
    """
    if status is EnrollmentStatus.ABGESCHLOSSEN:
        return {"completed_at": now, "cancelled_at": None}
    if status is EnrollmentStatus.ABGEBROCHEN:
        return {"completed_at": None, "cancelled_at": now}
    if status is EnrollmentStatus.AKTIV:
        return {"completed_at": None, "cancelled_at": None}
    raise ValueError(f"Unhandled enrollment status: {status!r}")


class CourseService:
    """
    Responsibilities:
        - archive_course(): one-way transition to 'archiviert'
        - publish_course(): new version + lesson snapshots
        - update_enrollment_status(): status change with derived timestamps
    """

    async def archive_course(self, db: AsyncSession, course_id: uuid.UUID) -> None:
        """
        Raises NotFoundError when the course does not exist, is not visible
        to the caller, or is already archived. A repeated archive therefore
        never re-applies the side effect.
        """
        try:
            result = await db.execute(
                update(Course)
                .where(Course.id == course_id, Course.is_archived.is_(False))
                .values(is_archived=True, status="archiviert")
                .returning(Course.id)
            )
            archived_id = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Archiving course %s failed: %s", course_id, e)
            raise UpstreamError(
                message="Kurs konnte nicht archiviert werden.",
                context={"course_id": str(course_id), "error": type(e).__name__},
            ) from e

        if archived_id is None:
            raise NotFoundError("Kurs nicht gefunden oder bereits archiviert.")

        logger.info("Course %s archived", course_id)

    async def publish_course(
        self, db: AsyncSession, caller: CallerIdentity, course_id: uuid.UUID
    ) -> PublishResult:
        try:
            result = await db.execute(select(Course).where(Course.id == course_id))
            course = result.scalar_one_or_none()
            if course is None or course.is_archived or course.created_by != caller.id:
                return PublishResult(failure=PublishFailure.NOT_AUTHORIZED)

            result = await db.execute(
                select(CourseLesson)
                .where(CourseLesson.course_id == course_id)
                .order_by(CourseLesson.order)
            )
            lessons = list(result.scalars().all())
            if not lessons:
                return PublishResult(failure=PublishFailure.NO_LESSONS)

            current_version = course.version
            new_version = current_version + 1
            result = await db.execute(
                update(Course)
                .where(Course.id == course_id, Course.version == current_version)
                .values(version=new_version, status="aktiv")
                .returning(Course.id)
            )
            if result.scalar_one_or_none() is None:
                return PublishResult(failure=PublishFailure.CONCURRENT_UPDATE)

            db.add_all(
                [
                    CourseLessonSnapshot(
                        course_id=course_id,
                        lesson_id=lesson.id,
                        version=new_version,
                        title=lesson.title,
                        beschreibung=lesson.beschreibung,
                        video_url=lesson.video_url,
                        exercise_unit=lesson.exercise_unit,
                        order=lesson.order,
                    )
                    for lesson in lessons
                ]
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Publishing course %s failed: %s", course_id, e)
            raise UpstreamError(
                message="Kurs konnte nicht veröffentlicht werden.",
                context={"course_id": str(course_id), "error": type(e).__name__},
            ) from e

        logger.info(
            "Course %s published as version %d with %d lessons",
            course_id,
            new_version,
            len(lessons),
        )
        return PublishResult(version=new_version)

    async def update_enrollment_status(
        self,
        db: AsyncSession,
        course_id: uuid.UUID,
        enrollment_id: uuid.UUID,
        status: EnrollmentStatus,
        now: Optional[datetime] = None,
    ) -> CourseEnrollment:
        values = {"status": status.value}
        values.update(derive_enrollment_timestamps(status, now or datetime.now(timezone.utc)))

        try:
            result = await db.execute(
                update(CourseEnrollment)
                .where(
                    CourseEnrollment.id == enrollment_id,
                    CourseEnrollment.course_id == course_id,
                )
                .values(**values)
                .returning(CourseEnrollment)
            )
            enrollment = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Updating enrollment %s failed: %s", enrollment_id, e)
            raise UpstreamError(
                message="Einschreibung konnte nicht aktualisiert werden.",
                context={"enrollment_id": str(enrollment_id), "error": type(e).__name__},
            ) from e

        if enrollment is None:
            raise NotFoundError("Einschreibung nicht gefunden.")

        logger.info("Enrollment %s set to %s", enrollment_id, status.value)
        return enrollment


# Singleton instance
course_service = CourseService()
