"""
Praxis OS Backend: Admin Schemas
=================================

What:  Response shape of the webhook audit log endpoint.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class WebhookEventItem(BaseModel):
    id: str
    received_at: Optional[datetime] = None
    event_type: str
    payload: Optional[Dict[str, Any]] = None
    processing_status: str
    error_message: Optional[str] = None


class WebhookEventsResponse(BaseModel):
    events: List[WebhookEventItem]
