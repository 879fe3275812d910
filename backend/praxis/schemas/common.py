"""
Praxis OS Backend: Shared Schemas
==================================

What:  Error envelope, health response and reusable field types.
Who:   Error models are referenced from every router's `responses={...}` so
       the OpenAPI docs show the envelope; the URL type is used by the push
       payloads.

Error envelope:
    {"error": "Validierungsfehler.",
     "details": {"formErrors": [], "fieldErrors": {"status": ["..."]}}}

    `details` is present only for validation failures. The request id is
    returned in the X-Request-ID header, never in the body.
"""

import re
from typing import Annotated, Dict, List, Optional

from pydantic import AfterValidator, AnyUrl, BaseModel, Field, TypeAdapter, ValidationError


class ValidationDetails(BaseModel):
    formErrors: List[str] = Field(default_factory=list)
    fieldErrors: Dict[str, List[str]] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str = Field(description="User-facing message (German)")
    details: Optional[ValidationDetails] = Field(
        default=None, description="Per-field messages; only on validation failures"
    )


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and database status.
    Who:   Returned by GET /health for load balancers and uptime monitors.
    """

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


class OkResponse(BaseModel):
    ok: bool = True


class SuccessResponse(BaseModel):
    success: bool = True


# ── Field types ───────────────────────────────────────────────────────────
# Canonical resource identifier: lowercase or uppercase hyphenated hex UUID
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def _ensure_uuid(value: str) -> str:
    if not UUID_PATTERN.fullmatch(value):
        raise ValueError("Ungültige UUID.")
    return value


UuidString = Annotated[str, AfterValidator(_ensure_uuid)]

_url_adapter = TypeAdapter(AnyUrl)


def _ensure_url(value: str) -> str:
    # Validate as URL but keep the caller's exact string; push endpoints are
    # matched verbatim against stored subscriptions.
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        raise ValueError("Ungültige URL.")
    return value


UrlString = Annotated[str, AfterValidator(_ensure_url)]
