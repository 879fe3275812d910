"""
Praxis OS Backend: Admin Route Handlers
========================================

What:  GET /api/admin/webhook-events, the webhook audit log.
How:   ADMIN_ONLY role gate; any other role (or none) answers 403 before
       the event query runs.
"""

import logging

from fastapi import APIRouter, Depends

from praxis.pipeline.roles import ADMIN_ONLY, require_roles
from praxis.pipeline.session import CallerContext
from praxis.schemas.admin import WebhookEventsResponse
from praxis.schemas.common import ErrorResponse
from praxis.services.admin_service import admin_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get(
    "/webhook-events",
    response_model=WebhookEventsResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Caller is not an admin", "model": ErrorResponse},
        500: {"description": "Store error", "model": ErrorResponse},
    },
    summary="List recent webhook events",
    description="The 50 most recent webhook events, newest first. Admins only.",
)
async def list_webhook_events(
    ctx: CallerContext = Depends(
        require_roles(
            ADMIN_ONLY,
            message="Nur Administratoren können auf das Event-Log zugreifen.",
            unauthenticated_message="Nicht autorisiert. Bitte einloggen.",
        )
    ),
) -> WebhookEventsResponse:
    events = await admin_service.list_webhook_events(ctx.db)
    return WebhookEventsResponse(events=events)
