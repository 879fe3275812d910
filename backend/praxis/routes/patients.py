"""
Praxis OS Backend: Patient Route Handlers
==========================================

What:  Endpoints around patient records:
           GET   /api/patients/check-duplicate
           GET   /api/patients/invite/{token}
           POST  /api/patients/invite/{token}/complete
           PATCH /api/patients/{id}/archive
Who:   Therapists (duplicate check, archive) and invited patients (invite
       lookup and completion).

Stage order for archive:
    session → role gate (staff) → id format → body → ownership → write

A patient that does not exist answers 404 for every role; an existing
patient treated by someone else answers 403.

The invite lookup is public: it runs before the patient has an account and
authorizes through possession of the token alone.
"""

import logging
import re
from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.database import get_db_session
from praxis.exceptions import BadRequestError
from praxis.pipeline.identifiers import require_query_params, validate_identifier, validate_token
from praxis.pipeline.payload import parse_payload
from praxis.pipeline.roles import STAFF_ROLES, ensure_owner, require_roles
from praxis.pipeline.session import CallerContext, authenticated
from praxis.schemas.common import ErrorResponse, SuccessResponse
from praxis.schemas.patient import (
    ArchiveRequest,
    ArchiveResponse,
    DuplicateCheckResponse,
    InviteDetails,
)
from praxis.services.patient_service import is_treating_therapist, patient_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])

PLEASE_LOG_IN = "Nicht autorisiert. Bitte einloggen."
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_birth_date(value: str) -> date:
    """Strict YYYY-MM-DD; calendar-invalid dates such as 2020-02-30 are rejected too."""
    if not ISO_DATE_PATTERN.match(value):
        raise BadRequestError("geburtsdatum muss im Format YYYY-MM-DD sein.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestError("geburtsdatum muss im Format YYYY-MM-DD sein.")


# ── Duplicate Check ──────────────────────────────────────────────────────────
# Declared before the /{patient_id} routes so the literal path wins.


@router.get(
    "/check-duplicate",
    response_model=DuplicateCheckResponse,
    responses={
        400: {"description": "Missing or malformed query parameter", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
    },
    summary="Check for an existing patient before creating one",
    description="Case-insensitive match on first and last name plus birth date, archived patients excluded.",
)
async def check_duplicate(
    request: Request,
    ctx: CallerContext = Depends(authenticated(PLEASE_LOG_IN)),
) -> DuplicateCheckResponse:
    params = require_query_params(
        request,
        ("vorname", "nachname", "geburtsdatum"),
        "vorname, nachname und geburtsdatum sind erforderlich.",
    )
    geburtsdatum = _parse_birth_date(params["geburtsdatum"])
    return await patient_service.find_duplicate(ctx.db, params["vorname"], params["nachname"], geburtsdatum)


# ── Invites ──────────────────────────────────────────────────────────────────


@router.get(
    "/invite/{token}",
    response_model=InviteDetails,
    responses={
        400: {"description": "Token too short", "model": ErrorResponse},
        404: {"description": "Unknown token", "model": ErrorResponse},
        410: {"description": "Invite already used", "model": ErrorResponse},
    },
    summary="Look up a registration invite",
)
async def get_invite(token: str, db: AsyncSession = Depends(get_db_session)) -> InviteDetails:
    validate_token(token)
    return await patient_service.get_invite(db, token)


@router.post(
    "/invite/{token}/complete",
    response_model=SuccessResponse,
    responses={
        400: {"description": "Token too short", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Invite belongs to another account", "model": ErrorResponse},
        404: {"description": "Unknown token", "model": ErrorResponse},
        409: {"description": "Registration already completed", "model": ErrorResponse},
    },
    summary="Complete registration from an invite",
    description="Creates the caller's patient profile and links the patient record to the account.",
)
async def complete_invite(
    token: str,
    ctx: CallerContext = Depends(authenticated("Nicht autorisiert. Bitte zuerst anmelden.", scoped=False)),
) -> SuccessResponse:
    validate_token(token)
    await patient_service.complete_invite(ctx.db, ctx.caller, token)
    return SuccessResponse()


# ── Archive ──────────────────────────────────────────────────────────────────


@router.patch(
    "/{patient_id}/archive",
    response_model=ArchiveResponse,
    responses={
        400: {"description": "Malformed id or JSON", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Not staff, or not the treating therapist", "model": ErrorResponse},
        404: {"description": "Patient not found", "model": ErrorResponse},
        422: {"description": "archive is not a boolean", "model": ErrorResponse},
        500: {"description": "Store error", "model": ErrorResponse},
    },
    summary="Archive or reactivate a patient",
)
async def archive_patient(
    patient_id: str,
    request: Request,
    ctx: CallerContext = Depends(require_roles(STAFF_ROLES, unauthenticated_message=PLEASE_LOG_IN)),
) -> ArchiveResponse:
    patient_uuid = validate_identifier(patient_id, "Ungültige Patienten-ID.")
    payload = await parse_payload(request, ArchiveRequest)

    await ensure_owner(
        ctx, is_treating_therapist, patient_uuid, "Patient nicht gefunden oder keine Berechtigung."
    )
    return await patient_service.set_archived(ctx.db, patient_uuid, payload.archive)
