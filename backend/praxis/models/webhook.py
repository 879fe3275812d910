"""
Praxis OS Backend: Webhook Event Model
=======================================

What:  ORM model for `webhook_events`, the audit log of inbound webhooks
       (e.g. booking-system callbacks).
Who:   Written by the webhook receiver, read by admins through
       GET /api/admin/webhook-events.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from praxis.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    received_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    processing_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="received",
        server_default=text("'received'"),
        comment="received, processed, failed",
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Newest-first listing is the only read pattern
    __table_args__ = (
        Index("idx_webhook_events_received_at", received_at.desc()),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "received_at": self.received_at.isoformat() if self.received_at else None,
            "event_type": self.event_type,
            "payload": self.payload,
            "processing_status": self.processing_status,
            "error_message": self.error_message,
        }
