"""
Praxis OS Backend: Patient Service
===================================

What:  Patient invites, archiving and duplicate detection.
Who:   Called by routes/patients.py and routes/me.py.

Invite lifecycle:
    pending/invited ──complete()──▶ registered
                                       │
                                       ├── lookup  → 410 Gone
                                       └── complete → 409 Conflict

    Invite lookups run before the patient has an account, and completion
    runs before the account is linked to the record, so both use the
    privileged session; row-level security would hide the record.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.exceptions import (
    AlreadyConsumedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UpstreamError,
)
from praxis.models.patient import Patient, UserProfile
from praxis.pipeline.roles import Role
from praxis.schemas.patient import (
    ArchivedPatient,
    ArchiveResponse,
    DuplicateCheckResponse,
    DuplicateMatch,
    InviteDetails,
)
from praxis.services.auth_base import CallerIdentity

logger = logging.getLogger(__name__)

INVITE_REGISTERED = "registered"


def _upstream(message: str, operation: str, e: Exception) -> UpstreamError:
    logger.error("%s failed: %s", operation, e)
    return UpstreamError(message=message, context={"operation": operation, "error": type(e).__name__})


async def is_treating_therapist(db: AsyncSession, caller: CallerIdentity, patient_id: uuid.UUID) -> bool:
    """
    Ownership predicate for patient records: admins may act on every
    patient, everyone else only on patients they treat.

    A patient that does not exist is NotFoundError rather than False, so a
    missing record answers 404 for every role.
    """
    if caller.role is Role.ADMIN:
        return True
    try:
        result = await db.execute(select(Patient.therapeut_id).where(Patient.id == patient_id))
        row = result.first()
    except SQLAlchemyError as e:
        raise _upstream("Patient konnte nicht geladen werden.", "is_treating_therapist", e) from e

    if row is None:
        raise NotFoundError("Patient nicht gefunden oder keine Berechtigung.")
    return row[0] == caller.id


class PatientService:
    """
    Responsibilities:
        - get_invite() / complete_invite(): single-use registration invite
        - set_archived(): soft archive and reactivation
        - find_duplicate(): pre-create duplicate check
    """

    async def _find_by_invite_token(self, db: AsyncSession, token: str) -> Optional[Patient]:
        result = await db.execute(select(Patient).where(Patient.invite_token == token).limit(1))
        return result.scalars().first()

    async def get_invite(self, db: AsyncSession, token: str) -> InviteDetails:
        try:
            patient = await self._find_by_invite_token(db, token)
        except SQLAlchemyError as e:
            raise _upstream("Einladung konnte nicht geladen werden.", "get_invite", e) from e

        if patient is None:
            raise NotFoundError("Einladung nicht gefunden oder ungültig.")
        if patient.invite_status == INVITE_REGISTERED:
            raise AlreadyConsumedError("Diese Einladung wurde bereits verwendet.")

        return InviteDetails(vorname=patient.vorname, nachname=patient.nachname, email=patient.email)

    async def complete_invite(self, db: AsyncSession, caller: CallerIdentity, token: str) -> None:
        """
        Creates the caller's patient profile and consumes the invite.

        The final write is conditioned on the invite not being registered yet;
        if a concurrent completion won, this one matches zero rows and ends
        as 409.
        """
        try:
            patient = await self._find_by_invite_token(db, token)
        except SQLAlchemyError as e:
            raise _upstream("Einladung konnte nicht geladen werden.", "complete_invite", e) from e

        if patient is None:
            raise NotFoundError("Einladung nicht gefunden.")
        if patient.invite_status == INVITE_REGISTERED:
            raise ConflictError("Registrierung bereits abgeschlossen.")
        if patient.user_id is not None and patient.user_id != caller.id:
            raise ForbiddenError("Diese Einladung gehört zu einem anderen Konto.")

        profile = {
            "role": Role.PATIENT.value,
            "status": "aktiv",
            "first_name": patient.vorname,
            "last_name": patient.nachname,
        }
        try:
            await db.execute(
                insert(UserProfile)
                .values(id=caller.id, **profile)
                .on_conflict_do_update(index_elements=[UserProfile.id], set_=profile)
            )
        except SQLAlchemyError as e:
            raise _upstream("Benutzerprofil konnte nicht erstellt werden.", "complete_invite", e) from e

        try:
            result = await db.execute(
                update(Patient)
                .where(Patient.id == patient.id, Patient.invite_status != INVITE_REGISTERED)
                .values(invite_status=INVITE_REGISTERED, user_id=caller.id)
                .returning(Patient.id)
            )
            linked_id = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise _upstream("Einladungsstatus konnte nicht aktualisiert werden.", "complete_invite", e) from e

        if linked_id is None:
            raise ConflictError("Registrierung bereits abgeschlossen.")

        logger.info("Invite completed: patient %s linked to user %s", patient.id, caller.id)

    async def set_archived(self, db: AsyncSession, patient_id: uuid.UUID, archive: bool) -> ArchiveResponse:
        verb = "archiviert" if archive else "reaktiviert"
        try:
            result = await db.execute(
                update(Patient)
                .where(Patient.id == patient_id)
                .values(archived_at=datetime.now(timezone.utc) if archive else None)
                .returning(Patient.id, Patient.vorname, Patient.nachname, Patient.archived_at)
            )
            row = result.first()
        except SQLAlchemyError as e:
            raise _upstream(f"Patient konnte nicht {verb} werden.", "set_archived", e) from e

        if row is None:
            raise NotFoundError("Patient nicht gefunden oder keine Berechtigung.")

        patient = ArchivedPatient(
            id=str(row.id), vorname=row.vorname, nachname=row.nachname, archived_at=row.archived_at
        )
        logger.info("Patient %s %s", patient_id, verb)
        return ArchiveResponse(patient=patient, message=f"{patient.vorname} {patient.nachname} wurde {verb}.")

    async def find_duplicate(
        self, db: AsyncSession, vorname: str, nachname: str, geburtsdatum: date
    ) -> DuplicateCheckResponse:
        """Case-insensitive name match among non-archived patients."""
        try:
            result = await db.execute(
                select(Patient.id, Patient.vorname, Patient.nachname, Patient.geburtsdatum)
                .where(
                    func.lower(Patient.vorname) == vorname.lower(),
                    func.lower(Patient.nachname) == nachname.lower(),
                    Patient.geburtsdatum == geburtsdatum,
                    Patient.archived_at.is_(None),
                )
                .limit(1)
            )
            row = result.first()
        except SQLAlchemyError as e:
            raise _upstream("Duplikatprüfung fehlgeschlagen.", "find_duplicate", e) from e

        if row is None:
            return DuplicateCheckResponse(duplicate=None, isDuplicate=False)

        match = DuplicateMatch(
            id=str(row.id), vorname=row.vorname, nachname=row.nachname, geburtsdatum=row.geburtsdatum
        )
        return DuplicateCheckResponse(duplicate=match, isDuplicate=True)


# Singleton instance
patient_service = PatientService()
