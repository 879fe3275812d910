"""
Praxis OS Backend: Course Schemas
==================================

What:  Request payloads and response shapes of the course endpoints.
"""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EnrollmentStatus(str, Enum):
    """Closed set of enrollment states a therapist may set."""

    AKTIV = "aktiv"
    ABGESCHLOSSEN = "abgeschlossen"
    ABGEBROCHEN = "abgebrochen"


class EnrollmentStatusUpdate(BaseModel):
    """Body of PATCH /api/courses/{id}/enrollments/{enrollmentId}."""

    status: EnrollmentStatus

    model_config = {"frozen": True}


class EnrollmentResponse(BaseModel):
    enrollment: Dict[str, Any]


class PublishResponse(BaseModel):
    version: int = Field(description="Version number created by this publish")
    status: str = Field(default="aktiv")
