"""
Praxis OS Backend: Patient Schemas
===================================

What:  Payloads and response shapes of the patient, invite and own-profile
       endpoints.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ArchiveRequest(BaseModel):
    """Body of PATCH /api/patients/{id}/archive: true archives, false reactivates."""

    archive: bool

    model_config = {"frozen": True}

    @field_validator("archive", mode="before")
    @classmethod
    def require_boolean(cls, v: Any) -> bool:
        # Strict: "true" or 1 are rejected
        if not isinstance(v, bool):
            raise ValueError("archive muss true (archivieren) oder false (reaktivieren) sein.")
        return v


class ArchivedPatient(BaseModel):
    id: str
    vorname: str
    nachname: str
    archived_at: Optional[datetime] = None


class ArchiveResponse(BaseModel):
    patient: ArchivedPatient
    message: str


class InviteDetails(BaseModel):
    """Pre-registration view of an invite; only what the sign-up form needs."""

    vorname: str
    nachname: str
    email: Optional[str] = None


class PatientProfile(BaseModel):
    id: str
    vorname: str
    nachname: str
    email: Optional[str] = None
    geburtsdatum: Optional[date] = None
    user_id: Optional[str] = None

    @classmethod
    def from_patient(cls, patient) -> "PatientProfile":
        return cls(
            id=str(patient.id),
            vorname=patient.vorname,
            nachname=patient.nachname,
            email=patient.email,
            geburtsdatum=patient.geburtsdatum,
            user_id=str(patient.user_id) if patient.user_id else None,
        )


class ProfileResponse(BaseModel):
    patient: Optional[PatientProfile] = Field(
        default=None, description="Null when no patient record belongs to the caller"
    )


class DuplicateMatch(BaseModel):
    id: str
    vorname: str
    nachname: str
    geburtsdatum: Optional[date] = None


class DuplicateCheckResponse(BaseModel):
    duplicate: Optional[DuplicateMatch] = None
    isDuplicate: bool = False
