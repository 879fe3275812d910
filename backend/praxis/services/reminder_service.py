"""
Praxis OS Backend: Training Reminder Job
=========================================

What:  Hourly job that reminds patients of today's training.
Who:   GET /api/cron/training-reminder, triggered by the scheduler.
When:  Once per hour; each run handles the patients whose reminder time
       falls into the current hour.

Selection (all in practice-local time, REMINDER_TIMEZONE):
    1. subscriptions with reminder_enabled and reminder_time "HH:%" for the
       current hour
    2. of those patients, the ones with an 'aktiv' assignment covering today
       whose active_days contain today's weekday code (mo, di, mi, do, fr, sa, so)
    3. one reminder push per patient, to devices with reminders enabled
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.config import settings
from praxis.exceptions import UpstreamError
from praxis.models.patient import PatientAssignment
from praxis.models.push import PushSubscription
from praxis.schemas.push import DispatchFilter, PushMessage
from praxis.services.push_base import PushSender
from praxis.services.push_service import push_service

logger = logging.getLogger(__name__)

# Indexed by datetime.weekday(): Monday is 0
WEEKDAY_CODES = ("mo", "di", "mi", "do", "fr", "sa", "so")

REMINDER_MESSAGE = PushMessage(
    title="Training heute!",
    body="Du hast heute ein Training geplant. Jetzt starten!",
    url="/app/training",
    tag="training-reminder",
)


def local_time_parts(now: Optional[datetime] = None) -> Tuple[str, str, date]:
    """Returns (weekday code, "HH", local date) for `now` in the practice timezone."""
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(ZoneInfo(settings.reminder_timezone))
    return WEEKDAY_CODES[local.weekday()], f"{local.hour:02d}", local.date()


class ReminderService:
    async def run_training_reminder(
        self, db: AsyncSession, sender: PushSender, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        sender.ensure_configured()
        weekday_code, hour, today = local_time_parts(now)

        try:
            result = await db.execute(
                select(PushSubscription.patient_id)
                .where(
                    PushSubscription.reminder_enabled.is_(True),
                    PushSubscription.reminder_time.like(f"{hour}:%"),
                )
                .distinct()
            )
            candidate_ids = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Loading reminder subscriptions failed: %s", e)
            raise UpstreamError(context={"operation": "training_reminder", "error": type(e).__name__}) from e

        if not candidate_ids:
            return {"ok": True, "sent": 0, "message": "Keine Subscriptions in dieser Stunde."}

        try:
            result = await db.execute(
                select(PatientAssignment.patient_id)
                .where(
                    PatientAssignment.patient_id.in_(candidate_ids),
                    PatientAssignment.status == "aktiv",
                    PatientAssignment.start_date <= today,
                    PatientAssignment.end_date >= today,
                    PatientAssignment.active_days.contains([weekday_code]),
                )
                .distinct()
            )
            patient_ids = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Loading reminder assignments failed: %s", e)
            raise UpstreamError(context={"operation": "training_reminder", "error": type(e).__name__}) from e

        if not patient_ids:
            return {"ok": True, "sent": 0, "message": "Keine aktiven Trainingstage für diese Stunde."}

        dispatch = await push_service.send_to_patients(
            db,
            sender,
            patient_ids,
            REMINDER_MESSAGE,
            DispatchFilter(reminder_enabled=True),
        )
        logger.info(
            "Training reminder %s %s:00: patients=%d sent=%d failed=%d cleaned=%d",
            weekday_code,
            hour,
            len(patient_ids),
            dispatch.sent,
            dispatch.failed,
            dispatch.cleaned,
        )
        return {
            "ok": True,
            "patients": len(patient_ids),
            "sent": dispatch.sent,
            "failed": dispatch.failed,
            "cleaned": dispatch.cleaned,
        }


# Singleton instance
reminder_service = ReminderService()
