from typing import Any, Dict, Optional, Set

from pydantic import BaseModel, Field, field_validator

from pushrelay.common.constants import DeviceLimits
from pushrelay.schemas.device import CamelModel


def coerce_data_payload(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """FCM data payloads only carry string values."""
    if not data:
        return {}
    return {str(key): "" if value is None else str(value) for key, value in data.items()}


class PushPayload(BaseModel):
    """What gets delivered to every addressed token."""

    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)
    image: Optional[str] = None
    # When set, no notification block is sent and the app renders from data.
    data_only: bool = False
    # Android delivery priority hint ("high" / "normal")
    priority: Optional[str] = None

    @field_validator("data", mode="before")
    @classmethod
    def _stringify_data(cls, value):
        return coerce_data_payload(value)


class DispatchResult(BaseModel):
    targeted: int = 0
    sent: int = 0
    failed: int = 0
    dead_tokens: Set[str] = Field(default_factory=set)
    removed_dead: int = 0


# Dispatch targets

class TokenTarget(BaseModel):
    token: str


class UserTarget(BaseModel):
    user_id: int


class BroadcastTarget(BaseModel):
    page_size: int = Field(20, ge=1)


# HTTP request bodies

class PushBaseRequest(CamelModel):
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None
    image: Optional[str] = None

    def to_payload(self) -> PushPayload:
        return PushPayload(title=self.title, body=self.body, data=self.data, image=self.image or None)


class PushTokenRequest(PushBaseRequest):
    token: str = Field(..., min_length=1)


class PushUserRequest(PushBaseRequest):
    user_id: int = Field(..., gt=0, le=DeviceLimits.BIGINT_MAX)


class PushAllRequest(PushBaseRequest):
    pass


# Event bus

class UserNotificationEventData(BaseModel):
    """Loose shape of a SendUserNotification event body; validated by the handler."""

    userId: Optional[Any] = None
    chatId: Optional[Any] = None
    route: Optional[Any] = None
    title: Optional[Any] = None
    body: Optional[Any] = None
    image: Optional[Any] = None


