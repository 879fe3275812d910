"""
Praxis OS Backend: Own-Record Resolution
=========================================

What:  Finds the patient record that belongs to the caller.
How:   `patients.user_id` is tried first. Records created before the patient
       had an account are not linked yet, so the caller's email is the
       fallback.

Each operation declares what a missing record means:
    MissingRecordPolicy.DENY   → 404 with the operation's message
    MissingRecordPolicy.EMPTY  → None; the operation answers with an empty value
"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from praxis.exceptions import NotFoundError, UpstreamError
from praxis.models.patient import Patient
from praxis.pipeline.session import CallerContext

logger = logging.getLogger(__name__)


class MissingRecordPolicy(str, Enum):
    DENY = "deny"
    EMPTY = "empty"


NO_PATIENT_PROFILE = "Kein Patientenprofil gefunden."


async def resolve_own_patient(
    ctx: CallerContext,
    policy: MissingRecordPolicy = MissingRecordPolicy.DENY,
    message: str = NO_PATIENT_PROFILE,
) -> Optional[Patient]:
    caller = ctx.caller
    try:
        result = await ctx.db.execute(select(Patient).where(Patient.user_id == caller.id).limit(1))
        patient = result.scalars().first()

        if patient is None and caller.email:
            result = await ctx.db.execute(select(Patient).where(Patient.email == caller.email).limit(1))
            patient = result.scalars().first()
    except SQLAlchemyError as e:
        raise UpstreamError(
            context={"operation": "resolve_own_patient", "error": type(e).__name__},
        ) from e

    if patient is None:
        if policy is MissingRecordPolicy.DENY:
            raise NotFoundError(message)
        logger.debug("No patient record for caller %s", caller.id)
    return patient
