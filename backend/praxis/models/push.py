"""
Praxis OS Backend: Push Subscription Model
===========================================

What:  ORM model for `push_subscriptions`, one row per patient device.
How:   `subscription_json` stores the browser's PushSubscription as-is
       ({endpoint, expirationTime, keys: {p256dh, auth}}). The endpoint URL
       inside it is the natural key; it is unique per browser install.

Reminder preferences are stored on every subscription of a patient and are
always updated together, so any row answers "what are this patient's
preferences".
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from praxis.database import Base


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    subscription_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
    device_type: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="ios, android, desktop"
    )

    # ── Preferences ───────────────────────────────────────────────────────
    reminder_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    # "HH:MM" in practice-local time (Europe/Berlin)
    reminder_time: Mapped[str] = mapped_column(
        String(5), nullable=False, default="08:00", server_default=text("'08:00'")
    )
    chat_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_push_subscriptions_patient_id", "patient_id"),
        # Upserts look rows up by endpoint
        Index(
            "uq_push_subscriptions_endpoint",
            text("(subscription_json->>'endpoint')"),
            unique=True,
        ),
    )

    @property
    def endpoint(self) -> Optional[str]:
        return (self.subscription_json or {}).get("endpoint")

    def __repr__(self) -> str:
        return f"<PushSubscription(id={self.id}, patient_id={self.patient_id}, device='{self.device_type}')>"
