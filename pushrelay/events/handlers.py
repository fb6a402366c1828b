import json
import logging
import re
from typing import Any, Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from pushrelay.common.constants import DeviceLimits, EventNames, PushConstants
from pushrelay.schemas.notification import (
    PushPayload,
    UserNotificationEventData,
    UserTarget,
)
from pushrelay.services.notification_service import NotificationService
from pushrelay.services.token_resolver import resolve_tokens

logger = logging.getLogger(__name__)

_http_url = TypeAdapter(AnyHttpUrl)
_user_id_pattern = re.compile(r"\d+", re.ASCII)


def parse_user_id(value: Any) -> Optional[int]:
    """Positive integer user id from an int or a numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        user_id = value
    elif isinstance(value, float) and value.is_integer():
        user_id = int(value)
    elif isinstance(value, str) and _user_id_pattern.fullmatch(value.strip()):
        user_id = int(value.strip())
    else:
        return None
    return user_id if 0 < user_id <= DeviceLimits.BIGINT_MAX else None


def normalize_image_url(value: Any) -> Optional[str]:
    """Absolute http(s) URL in normalised form, or None for anything else."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return str(_http_url.validate_python(value.strip()))
    except ValidationError:
        return None


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


async def handle_notification_message(
    raw: bytes,
    service: NotificationService,
    session_factory: Callable[[], Session],
) -> None:
    """Entry point for one event bus message. Never raises."""
    try:
        await _dispatch_event(raw, service, session_factory)
    except Exception:
        logger.exception("Unhandled error while processing event message")


async def _dispatch_event(raw: bytes, service: NotificationService, session_factory) -> None:
    try:
        event = json.loads(raw)
    except ValueError:
        logger.error("Event message is not valid JSON: %r", raw)
        return
    if not isinstance(event, dict):
        logger.error("Event message is not a JSON object: %r", raw)
        return

    event_name = event.get("eventName")
    if event_name != EventNames.SEND_USER_NOTIFICATION:
        logger.info("Unhandled event name: %s", event_name)
        return

    try:
        data = UserNotificationEventData.model_validate(event.get("data") or {})
    except ValidationError:
        logger.error("%s event has invalid data: %r", event_name, event.get("data"))
        return
    await handle_send_user_notification(data, service, session_factory)


def _load_user_tokens(session_factory, user_id: int) -> List[str]:
    db = session_factory()
    try:
        return resolve_tokens(db, UserTarget(user_id=user_id))
    finally:
        db.close()


async def handle_send_user_notification(
    data: UserNotificationEventData,
    service: NotificationService,
    session_factory: Callable[[], Session],
) -> None:
    user_id = parse_user_id(data.userId)
    if user_id is None:
        logger.error("SendUserNotification missing or invalid userId: %r", data.userId)
        return

    title = _as_text(data.title)
    body = _as_text(data.body)
    if not title or not body:
        logger.error("SendUserNotification missing title/body: title=%r body=%r", title, body)
        return

    try:
        tokens = await run_in_threadpool(_load_user_tokens, session_factory, user_id)
    except Exception as exc:
        logger.error("Failed to load tokens for user %s: %s", user_id, exc)
        return

    if not tokens:
        logger.info("No active tokens for userId=%s", user_id)
        return

    # Everything rides in data so the app controls how it is displayed
    payload = PushPayload(
        title=title,
        body=body,
        data={
            "eventName": EventNames.SEND_USER_NOTIFICATION,
            "chatId": _as_text(data.chatId),
            "title": title,
            "route": _as_text(data.route),
            "body": body,
            "image": normalize_image_url(data.image) or "",
        },
        data_only=True,
        priority=PushConstants.ANDROID_PRIORITY_HIGH,
    )

    result = await service.dispatch(tokens, payload)
    logger.info(
        "SendUserNotification for userId=%s: sent=%d failed=%d",
        user_id,
        result.sent,
        result.failed,
    )
    if result.dead_tokens:
        await service.prune_dead_tokens(result.dead_tokens)
