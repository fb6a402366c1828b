import logging
from typing import List, Optional, Protocol

import firebase_admin
from firebase_admin import exceptions, messaging
from pydantic import BaseModel, Field

from pushrelay.schemas.notification import PushPayload

logger = logging.getLogger(__name__)

UNREGISTERED_CODE = "messaging/registration-token-not-registered"
INVALID_TOKEN_CODE = "messaging/invalid-registration-token"


class TokenResult(BaseModel):
    token: str
    success: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class MulticastResult(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    responses: List[TokenResult] = Field(default_factory=list)


class PushProvider(Protocol):
    def send_one(self, token: str, payload: PushPayload) -> str:
        ...

    def send_multicast(self, tokens: List[str], payload: PushPayload) -> MulticastResult:
        ...


class PushSendError(Exception):
    """A single-token send was rejected by the provider."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


def error_code_for(exc: Optional[BaseException]) -> str:
    """Map a Firebase exception onto an FCM-style ``messaging/...`` code."""
    if exc is None:
        return ""
    if isinstance(exc, messaging.UnregisteredError):
        return UNREGISTERED_CODE
    if isinstance(exc, messaging.SenderIdMismatchError):
        return "messaging/mismatched-credential"
    if isinstance(exc, messaging.QuotaExceededError):
        return "messaging/message-rate-exceeded"
    if isinstance(exc, messaging.ThirdPartyAuthError):
        return "messaging/third-party-auth-error"
    if isinstance(exc, exceptions.InvalidArgumentError):
        # FCM reports malformed tokens as INVALID_ARGUMENT with this wording
        if "registration token" in str(exc).lower():
            return INVALID_TOKEN_CODE
        return "messaging/invalid-argument"
    if isinstance(exc, exceptions.FirebaseError):
        return f"messaging/{str(exc.code).lower().replace('_', '-')}"
    return "messaging/unknown-error"


class FirebasePushProvider:
    """Push provider backed by the Firebase Admin SDK."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    @staticmethod
    def _notification(payload: PushPayload) -> Optional[messaging.Notification]:
        if payload.data_only:
            return None
        return messaging.Notification(title=payload.title, body=payload.body, image=payload.image)

    @staticmethod
    def _android(payload: PushPayload) -> Optional[messaging.AndroidConfig]:
        if not payload.priority:
            return None
        return messaging.AndroidConfig(priority=payload.priority)

    def send_one(self, token: str, payload: PushPayload) -> str:
        message = messaging.Message(
            token=token,
            notification=self._notification(payload),
            data=payload.data or None,
            android=self._android(payload),
        )
        try:
            return messaging.send(message, app=self.app)
        except exceptions.FirebaseError as exc:
            raise PushSendError(str(exc), code=error_code_for(exc)) from exc

    def send_multicast(self, tokens: List[str], payload: PushPayload) -> MulticastResult:
        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=self._notification(payload),
            data=payload.data or None,
            android=self._android(payload),
        )
        response = messaging.send_each_for_multicast(message, app=self.app)

        results = []
        for token, send_response in zip(tokens, response.responses):
            if send_response.success:
                results.append(TokenResult(token=token, success=True, message_id=send_response.message_id))
            else:
                exc = send_response.exception
                results.append(
                    TokenResult(
                        token=token,
                        success=False,
                        error_code=error_code_for(exc),
                        error_message=str(exc) if exc else "",
                    )
                )

        logger.debug(
            "Multicast to %d token(s): success=%d failure=%d",
            len(tokens),
            response.success_count,
            response.failure_count,
        )
        return MulticastResult(
            success_count=response.success_count,
            failure_count=response.failure_count,
            responses=results,
        )
