"""
Praxis OS Backend: Scheduled Job Endpoints
===========================================

What:  GET /api/cron/training-reminder, run hourly by the scheduler.
Who:   The hosting platform's cron (sends `Authorization: Bearer <CRON_SECRET>`)
       or a database-side scheduler (sends `x-cron-secret`).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.database import get_db_session
from praxis.pipeline.session import require_shared_secret
from praxis.schemas.common import ErrorResponse
from praxis.services.push_base import PushSender
from praxis.services.reminder_service import reminder_service
from praxis.services.webpush_service import get_push_sender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"])


class ReminderRunResponse(BaseModel):
    ok: bool = True
    sent: int = 0
    patients: Optional[int] = None
    failed: Optional[int] = None
    cleaned: Optional[int] = None
    message: Optional[str] = None


@router.get(
    "/training-reminder",
    response_model=ReminderRunResponse,
    response_model_exclude_none=True,
    responses={
        401: {"description": "Missing or wrong secret", "model": ErrorResponse},
        500: {"description": "CRON_SECRET or VAPID keys not configured", "model": ErrorResponse},
    },
    summary="Send this hour's training reminders",
    dependencies=[Depends(require_shared_secret(allow_bearer=True))],
)
async def training_reminder(
    db: AsyncSession = Depends(get_db_session),
    sender: PushSender = Depends(get_push_sender),
) -> ReminderRunResponse:
    summary = await reminder_service.run_training_reminder(db, sender)
    return ReminderRunResponse(**summary)
