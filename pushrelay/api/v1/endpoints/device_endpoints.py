import json
import logging

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushrelay.api.deps import get_db
from pushrelay.common.response_common import ResponseCommon
from pushrelay.schemas.device import DeviceRegisterRequest, DeviceRemoveRequest
from pushrelay.services.device_service import DeviceService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register")
async def register_device(
    request: DeviceRegisterRequest,
    db: Session = Depends(get_db),
):
    """
    Register a device or refresh its push token.

    - **deviceId**: upsert key, one row per device
    - **fcmToken**: moved to this device if another device held it
    - **userId**, **gameId**, **platform**, **appVersion**: optional
    """
    try:
        device = await run_in_threadpool(
            DeviceService.upsert_device,
            db=db,
            device_id=request.device_id,
            fcm_token=request.fcm_token,
            user_id=request.user_id,
            game_id=request.game_id,
            platform=request.platform,
            app_version=request.app_version,
        )
        response = ResponseCommon.success_response(**device.model_dump(by_alias=True))
    except SQLAlchemyError as exc:
        logger.error("Failed to register device %s: %s", request.device_id, exc)
        response = ResponseCommon.error_response(str(exc), code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(
        content=json.dumps(response.to_json()),
        status_code=response.code,
        media_type="application/json",
    )


@router.post("/remove")
async def remove_device(
    request: DeviceRemoveRequest,
    db: Session = Depends(get_db),
):
    """Remove a device only when deviceId, fcmToken, userId and gameId all match."""
    try:
        removed = await run_in_threadpool(
            DeviceService.delete_by_identifiers,
            db=db,
            device_id=request.device_id,
            fcm_token=request.fcm_token,
            user_id=request.user_id,
            game_id=request.game_id,
        )
        response = ResponseCommon.success_response(removed=removed)
    except SQLAlchemyError as exc:
        logger.error("Failed to remove device %s: %s", request.device_id, exc)
        response = ResponseCommon.error_response(str(exc), code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(
        content=json.dumps(response.to_json()),
        status_code=response.code,
        media_type="application/json",
    )
