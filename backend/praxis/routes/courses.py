"""
Praxis OS Backend: Course Route Handlers
=========================================

What:  POST /api/courses/{id}/archive, POST /api/courses/{id}/publish and
       PATCH /api/courses/{id}/enrollments/{enrollmentId}.
How:   Session Resolver as dependency; identifiers and body validated at the
       top of each handler; one CourseService call; flat JSON on success.
Who:   Therapist course editor in the PWA.

Row-level security limits every statement to courses the caller may see,
so the handlers need no role gate of their own.
"""

import logging

from fastapi import APIRouter, Depends, Request

from praxis.exceptions import BusinessRuleError, ConflictError, ForbiddenError
from praxis.pipeline.identifiers import validate_identifier, validate_identifiers
from praxis.pipeline.payload import parse_payload
from praxis.pipeline.session import CallerContext, authenticated
from praxis.schemas.common import ErrorResponse, SuccessResponse
from praxis.schemas.course import EnrollmentResponse, EnrollmentStatusUpdate, PublishResponse
from praxis.services.course_service import PublishFailure, course_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Courses"])

INVALID_COURSE_ID = "Ungültige Kurs-ID."

# Every PublishFailure variant maps to exactly one response
PUBLISH_FAILURES = {
    PublishFailure.NOT_AUTHORIZED: (ForbiddenError, "Keine Berechtigung oder Kurs nicht gefunden."),
    PublishFailure.NO_LESSONS: (BusinessRuleError, "Der Kurs muss mindestens eine Lektion enthalten."),
    PublishFailure.CONCURRENT_UPDATE: (
        ConflictError,
        "Der Kurs wurde gleichzeitig veröffentlicht. Bitte erneut versuchen.",
    ),
}
if set(PUBLISH_FAILURES) != set(PublishFailure):
    raise RuntimeError("PUBLISH_FAILURES must cover every PublishFailure variant")


@router.post(
    "/courses/{course_id}/archive",
    response_model=SuccessResponse,
    responses={
        400: {"description": "Malformed course id", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        404: {"description": "Course missing or already archived", "model": ErrorResponse},
        500: {"description": "Store error", "model": ErrorResponse},
    },
    summary="Archive a course",
    description="One-way transition to 'archiviert'. Archiving twice answers 404.",
)
async def archive_course(
    course_id: str,
    ctx: CallerContext = Depends(authenticated()),
) -> SuccessResponse:
    course_uuid = validate_identifier(course_id, INVALID_COURSE_ID)
    await course_service.archive_course(ctx.db, course_uuid)
    return SuccessResponse()


@router.post(
    "/courses/{course_id}/publish",
    response_model=PublishResponse,
    responses={
        400: {"description": "Malformed course id", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Not the course owner, or course missing", "model": ErrorResponse},
        409: {"description": "Concurrent publish", "model": ErrorResponse},
        422: {"description": "Course has no lessons", "model": ErrorResponse},
        500: {"description": "Store error", "model": ErrorResponse},
    },
    summary="Publish a new course version",
    description=(
        "Increments the course version, snapshots the current lessons under it "
        "and sets the course active."
    ),
)
async def publish_course(
    course_id: str,
    ctx: CallerContext = Depends(authenticated()),
) -> PublishResponse:
    course_uuid = validate_identifier(course_id, INVALID_COURSE_ID)

    result = await course_service.publish_course(ctx.db, ctx.caller, course_uuid)
    if not result.ok:
        error_class, message = PUBLISH_FAILURES[result.failure]
        raise error_class(message, context={"course_id": course_id})

    return PublishResponse(version=result.version, status="aktiv")


@router.patch(
    "/courses/{course_id}/enrollments/{enrollment_id}",
    response_model=EnrollmentResponse,
    responses={
        400: {"description": "Malformed id or JSON", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        404: {"description": "Enrollment not found", "model": ErrorResponse},
        422: {"description": "Invalid status", "model": ErrorResponse},
        500: {"description": "Store error", "model": ErrorResponse},
    },
    summary="Change an enrollment's status",
    description=(
        "Sets status to aktiv, abgeschlossen or abgebrochen. completed_at and "
        "cancelled_at are derived from the new status."
    ),
)
async def update_enrollment(
    course_id: str,
    enrollment_id: str,
    request: Request,
    ctx: CallerContext = Depends(authenticated()),
) -> EnrollmentResponse:
    course_uuid, enrollment_uuid = validate_identifiers([course_id, enrollment_id])
    payload = await parse_payload(request, EnrollmentStatusUpdate)

    enrollment = await course_service.update_enrollment_status(
        ctx.db, course_uuid, enrollment_uuid, payload.status
    )
    return EnrollmentResponse(enrollment=enrollment.to_dict())
