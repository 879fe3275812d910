"""
Praxis OS Backend: Push Schemas
================================

What:  Payloads of the push endpoints (subscribe, unsubscribe, preferences,
       internal dispatch) and the dispatch result.
How:   Field aliases keep the camelCase wire names the PWA sends; validation
       errors are therefore reported under the camelCase names too.

Every push payload failure is answered with 400 "Ungültige Eingabe.", not 422.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from praxis.schemas.common import UrlString, UuidString

REMINDER_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DeviceType(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    DESKTOP = "desktop"


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)

    model_config = {"frozen": True}


class BrowserSubscription(BaseModel):
    """The browser's PushSubscription.toJSON() output."""

    endpoint: UrlString
    expirationTime: Optional[float] = None
    keys: SubscriptionKeys

    model_config = {"frozen": True}


class SubscribeRequest(BaseModel):
    subscription: BrowserSubscription
    device_type: DeviceType = Field(alias="deviceType")

    model_config = {"frozen": True, "populate_by_name": True}


class UnsubscribeRequest(BaseModel):
    endpoint: UrlString

    model_config = {"frozen": True}


class PreferencesUpdate(BaseModel):
    """At least one preference must be present."""

    reminder_enabled: Optional[bool] = Field(default=None, alias="reminderEnabled")
    reminder_time: Optional[str] = Field(default=None, alias="reminderTime")
    chat_enabled: Optional[bool] = Field(default=None, alias="chatEnabled")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not REMINDER_TIME_PATTERN.match(v):
            raise ValueError("Ungültiges Zeitformat. Erwartet HH:MM.")
        return v

    @model_validator(mode="after")
    def require_any_field(self) -> "PreferencesUpdate":
        if self.reminder_enabled is None and self.reminder_time is None and self.chat_enabled is None:
            raise ValueError("Mindestens ein Feld muss angegeben werden.")
        return self

    def changes(self) -> dict:
        """Column updates for the fields the client actually sent."""
        values = {
            "reminder_enabled": self.reminder_enabled,
            "reminder_time": self.reminder_time,
            "chat_enabled": self.chat_enabled,
        }
        return {column: value for column, value in values.items() if value is not None}


class PreferencesResponse(BaseModel):
    reminderEnabled: bool = True
    reminderTime: str = "08:00"
    chatEnabled: bool = True


class DispatchFilter(BaseModel):
    """Restricts a dispatch to subscriptions with these preference values."""

    chat_enabled: Optional[bool] = Field(default=None, alias="chatEnabled")
    reminder_enabled: Optional[bool] = Field(default=None, alias="reminderEnabled")

    model_config = {"frozen": True, "populate_by_name": True}


class SendPushRequest(BaseModel):
    """Body of the internal POST /api/push/send."""

    patient_id: UuidString = Field(alias="patientId")
    title: str = Field(min_length=1, max_length=100)
    body: str = Field(min_length=1, max_length=300)
    icon: Optional[UrlString] = None
    url: Optional[str] = None
    tag: Optional[str] = None
    filter: Optional[DispatchFilter] = None

    model_config = {"frozen": True, "populate_by_name": True}


class PushMessage(BaseModel):
    """Notification content; missing icon/url fall back to configured defaults."""

    title: str
    body: str
    icon: Optional[str] = None
    url: Optional[str] = None
    tag: Optional[str] = None

    model_config = {"frozen": True}


class DispatchResult(BaseModel):
    """Outcome counters of one dispatch run."""

    sent: int = 0
    failed: int = 0
    cleaned: int = 0

    def __add__(self, other: "DispatchResult") -> "DispatchResult":
        return DispatchResult(
            sent=self.sent + other.sent,
            failed=self.failed + other.failed,
            cleaned=self.cleaned + other.cleaned,
        )
