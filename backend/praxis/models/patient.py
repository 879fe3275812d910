"""
Praxis OS Backend: Patient & Profile Models
============================================

What:  ORM models for `user_profiles`, `patients` and `patient_assignments`.
Why:   These tables decide who a caller is inside the practice (role) and
       which patient record belongs to a logged-in patient.
How:   Mapped onto the hosted database's existing tables; Alembic owns the
       schema, row-level security policies live in the database itself.

Two identities meet here:
    user_profiles.id     the auth subject (one row per account, holds `role`)
    patients.user_id     link from a patient record to its account. NULL until
                         the patient registers through an invite; until then
                         the record is only reachable by email.
"""

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import Date, Index, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from praxis.database import Base


class UserProfile(Base):
    """
    One row per authenticated account.

    `role` is stored as free text; the Role Gate parses it into the closed
    Role enum and treats anything unknown as "no role".
    """

    __tablename__ = "user_profiles"

    # Same value as the auth provider's user id (auth.uid())
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)

    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="admin, heilpraktiker, physiotherapeut, praeventionstrainer, "
                "personal_trainer, praxismanagement, patient",
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="aktiv", server_default=text("'aktiv'")
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, role='{self.role}')>"


class Patient(Base):
    """
    A patient record kept by a treating therapist.

    Lifecycle:
        1. Created by staff (invite_status = 'pending', user_id NULL)
        2. Patient opens the invite link and registers; the invite completion
           sets user_id and invite_status = 'registered' exactly once
        3. Archived (archived_at set) instead of deleted; medical records
           must be retained, so a reactivation simply clears archived_at
    """

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    # Treating therapist (user_profiles.id); drives the ownership check
    therapeut_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, unique=True
    )

    vorname: Mapped[str] = mapped_column(String(100), nullable=False)
    nachname: Mapped[str] = mapped_column(String(100), nullable=False)
    geburtsdatum: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Invite ────────────────────────────────────────────────────────────
    invite_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    invite_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        server_default=text("'pending'"),
        comment="pending, invited, registered",
    )

    archived_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_patients_therapeut_id", "therapeut_id"),
        Index("idx_patients_email", "email"),
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, invite_status='{self.invite_status}')>"


class PatientAssignment(Base):
    """Training plan assigned to a patient for a date range and set of weekdays."""

    __tablename__ = "patient_assignments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="aktiv", server_default=text("'aktiv'")
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # German weekday codes: mo, di, mi, do, fr, sa, so
    active_days: Mapped[List[str]] = mapped_column(ARRAY(String(2)), nullable=False, default=list)

    __table_args__ = (
        Index("idx_patient_assignments_patient_id", "patient_id"),
    )
