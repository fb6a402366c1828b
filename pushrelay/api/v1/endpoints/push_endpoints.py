import json
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from pushrelay.api.deps import get_db, get_notification_service
from pushrelay.common.constants import InfoMessages
from pushrelay.common.response_common import ResponseCommon
from pushrelay.schemas.notification import PushAllRequest, PushTokenRequest, PushUserRequest
from pushrelay.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


def _json_response(response: ResponseCommon) -> Response:
    return Response(
        content=json.dumps(response.to_json()),
        status_code=response.code,
        media_type="application/json",
    )


def _server_error(exc: Exception) -> ResponseCommon:
    return ResponseCommon.error_response(str(exc), code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/token")
async def push_to_token(
    request: PushTokenRequest,
    service: NotificationService = Depends(get_notification_service),
):
    """Send to a single push token. `data` values are sent as strings."""
    try:
        msg_id = await service.send_to_token(request.token, request.to_payload())
        response = ResponseCommon.success_response(msgId=msg_id)
    except Exception as exc:
        logger.error("Push to token failed: %s", exc)
        response = _server_error(exc)
    return _json_response(response)


@router.post("/user")
async def push_to_user(
    request: PushUserRequest,
    db: Session = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
):
    """Send to every active device of `userId`, removing tokens the provider reports dead."""
    try:
        result = await service.send_to_user(db, request.user_id, request.to_payload())
    except Exception as exc:
        logger.error("Push to user %s failed: %s", request.user_id, exc)
        return _json_response(_server_error(exc))

    fields = {"sent": result.sent, "failed": result.failed, "removedDead": result.removed_dead}
    if result.targeted == 0:
        fields["info"] = InfoMessages.NO_TOKENS_FOR_USER
    return _json_response(ResponseCommon.success_response(**fields))


@router.post("/all")
@router.post("/topic")
async def push_to_all(
    request: PushAllRequest,
    db: Session = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
):
    """Broadcast to every active device."""
    try:
        result = await service.send_to_all(db, request.to_payload())
    except Exception as exc:
        logger.error("Broadcast failed: %s", exc)
        return _json_response(_server_error(exc))

    fields = {"sent": result.sent, "failed": result.failed}
    if result.targeted == 0:
        fields["info"] = InfoMessages.NO_ACTIVE_USERS
    return _json_response(ResponseCommon.success_response(**fields))
