"""
Praxis OS Backend: Push Sender Interface
=========================================

What:  Abstract contract for delivering one notification to one browser
       subscription.
Why:   PushService decides whom to notify and what to clean up; the sender
       only talks to the push provider. Tests inject a recording fake.
How:   WebPushSender (webpush_service.py) implements it with pywebpush.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    # Provider answered 404/410: the subscription no longer exists
    GONE = "gone"
    FAILED = "failed"


class PushSender(ABC):
    """
    Contract:
        - send() never raises for a delivery failure; it reports an outcome
        - ensure_configured() raises ConfigurationError when keys are missing
    """

    def ensure_configured(self) -> None:
        return None

    @abstractmethod
    async def send(self, subscription: Dict[str, Any], payload: Dict[str, Any]) -> DeliveryOutcome:
        ...
