"""
Praxis OS Backend: Admin Service
=================================

What:  Read access to the webhook audit log.
Who:   GET /api/admin/webhook-events, behind the ADMIN_ONLY role gate.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.config import settings
from praxis.exceptions import UpstreamError
from praxis.models.webhook import WebhookEvent

logger = logging.getLogger(__name__)


class AdminService:
    async def list_webhook_events(
        self, db: AsyncSession, limit: int = settings.webhook_events_limit
    ) -> List[Dict[str, Any]]:
        """Newest events first, at most `limit` of them."""
        try:
            result = await db.execute(
                select(WebhookEvent).order_by(WebhookEvent.received_at.desc()).limit(limit)
            )
            events = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Loading webhook events failed: %s", e)
            raise UpstreamError(
                message="Event-Log konnte nicht geladen werden.",
                context={"operation": "list_webhook_events", "error": type(e).__name__},
            ) from e

        return [event.to_dict() for event in events]


# Singleton instance
admin_service = AdminService()
