"""
Praxis OS Backend: Own-Record Route Handlers
=============================================

What:  Endpoints a logged-in patient uses on their own record:
           GET    /api/me/profile
           POST   /api/me/push/subscribe
           DELETE /api/me/push/unsubscribe
           GET    /api/me/push/preferences
           PATCH  /api/me/push/preferences
How:   Own patient record resolved by user_id, falling back to email.
       The profile endpoint is fail-open (no record → {"patient": null});
       the push endpoints are fail-closed (no record → 404).

Push payload errors answer 400 "Ungültige Eingabe." and are checked before
the patient record is looked up.
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from praxis.pipeline.payload import parse_payload
from praxis.pipeline.records import MissingRecordPolicy, resolve_own_patient
from praxis.pipeline.session import CallerContext, authenticated
from praxis.schemas.common import ErrorResponse, OkResponse
from praxis.schemas.patient import PatientProfile, ProfileResponse
from praxis.schemas.push import (
    PreferencesResponse,
    PreferencesUpdate,
    SubscribeRequest,
    UnsubscribeRequest,
)
from praxis.services.push_service import push_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/me", tags=["Me"])

INVALID_INPUT = "Ungültige Eingabe."

PUSH_RESPONSES = {
    400: {"description": "Invalid JSON or payload", "model": ErrorResponse},
    401: {"description": "Not authenticated", "model": ErrorResponse},
    404: {"description": "No patient record for the caller", "model": ErrorResponse},
    500: {"description": "Store error", "model": ErrorResponse},
}


@router.get(
    "/profile",
    response_model=ProfileResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="The caller's own patient record",
    description="Returns {\"patient\": null} when no patient record belongs to the caller.",
)
async def get_profile(ctx: CallerContext = Depends(authenticated())) -> ProfileResponse:
    patient = await resolve_own_patient(ctx, MissingRecordPolicy.EMPTY)
    if patient is None:
        return ProfileResponse(patient=None)
    return ProfileResponse(patient=PatientProfile.from_patient(patient))


@router.post(
    "/push/subscribe",
    response_model=OkResponse,
    status_code=status.HTTP_201_CREATED,
    responses=PUSH_RESPONSES,
    summary="Register this device for push notifications",
)
async def subscribe(request: Request, ctx: CallerContext = Depends(authenticated())) -> OkResponse:
    payload = await parse_payload(request, SubscribeRequest, invalid_status=400, message=INVALID_INPUT)
    patient = await resolve_own_patient(ctx)
    await push_service.subscribe(ctx.db, patient.id, payload)
    return OkResponse()


@router.delete(
    "/push/unsubscribe",
    response_model=OkResponse,
    responses=PUSH_RESPONSES,
    summary="Remove this device's push subscription",
)
async def unsubscribe(request: Request, ctx: CallerContext = Depends(authenticated())) -> OkResponse:
    payload = await parse_payload(request, UnsubscribeRequest, invalid_status=400, message=INVALID_INPUT)
    patient = await resolve_own_patient(ctx)
    await push_service.unsubscribe(ctx.db, patient.id, payload.endpoint)
    return OkResponse()


@router.get(
    "/push/preferences",
    response_model=PreferencesResponse,
    responses=PUSH_RESPONSES,
    summary="Reminder and chat notification preferences",
)
async def get_preferences(ctx: CallerContext = Depends(authenticated())) -> PreferencesResponse:
    patient = await resolve_own_patient(ctx)
    return await push_service.get_preferences(ctx.db, patient.id)


@router.patch(
    "/push/preferences",
    response_model=OkResponse,
    responses=PUSH_RESPONSES,
    summary="Update notification preferences on all devices",
)
async def update_preferences(request: Request, ctx: CallerContext = Depends(authenticated())) -> OkResponse:
    payload = await parse_payload(request, PreferencesUpdate, invalid_status=400, message=INVALID_INPUT)
    patient = await resolve_own_patient(ctx)
    await push_service.update_preferences(ctx.db, patient.id, payload)
    return OkResponse()
