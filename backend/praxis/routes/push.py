"""
Praxis OS Backend: Internal Push Dispatch
==========================================

What:  POST /api/push/send, sends one notification to all devices of a
       patient.
Who:   Server-to-server only (chat service, scheduled jobs). Guarded by the
       shared `x-cron-secret` header, not by a user session.
How:   Runs on the privileged session; the caller is a service, not a user.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.database import get_db_session
from praxis.pipeline.payload import parse_payload
from praxis.pipeline.session import require_shared_secret
from praxis.schemas.common import ErrorResponse
from praxis.schemas.push import PushMessage, SendPushRequest
from praxis.services.push_base import PushSender
from praxis.services.push_service import push_service
from praxis.services.webpush_service import get_push_sender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/push", tags=["Push"])


class SendPushResponse(BaseModel):
    ok: bool = True
    sent: int
    failed: int
    cleaned: int


@router.post(
    "/send",
    response_model=SendPushResponse,
    responses={
        400: {"description": "Invalid JSON or payload", "model": ErrorResponse},
        401: {"description": "Missing or wrong x-cron-secret", "model": ErrorResponse},
        500: {"description": "CRON_SECRET or VAPID keys not configured", "model": ErrorResponse},
    },
    summary="Send a push notification to a patient (internal)",
    description=(
        "Delivers to every subscription of the patient, optionally filtered by "
        "chatEnabled/reminderEnabled. Expired subscriptions are deleted and "
        "counted as cleaned."
    ),
    dependencies=[Depends(require_shared_secret())],
)
async def send_push(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    sender: PushSender = Depends(get_push_sender),
) -> SendPushResponse:
    payload = await parse_payload(request, SendPushRequest, invalid_status=400, message="Ungültige Eingabe.")

    message = PushMessage(
        title=payload.title,
        body=payload.body,
        icon=payload.icon,
        url=payload.url,
        tag=payload.tag,
    )
    result = await push_service.send_to_patient(
        db, sender, uuid.UUID(payload.patient_id), message, payload.filter
    )
    return SendPushResponse(sent=result.sent, failed=result.failed, cleaned=result.cleaned)
