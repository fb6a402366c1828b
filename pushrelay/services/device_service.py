import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from pushrelay.models.device_model import Device
from pushrelay.schemas.device import RegisteredDevice

logger = logging.getLogger(__name__)


class DeviceService:
    """Persistence of device -> push token bindings."""

    @staticmethod
    def upsert_device(
        db: Session,
        device_id: str,
        fcm_token: str,
        user_id: Optional[int] = None,
        game_id: Optional[int] = None,
        platform: Optional[str] = None,
        app_version: Optional[str] = None,
    ) -> RegisteredDevice:
        """
        Register a device in a single transaction.

        A token bound to another device is detached from it first, the
        current row for the device is reset to inactive, then the row is
        inserted or updated and reactivated.
        """
        try:
            evicted = (
                db.query(Device)
                .filter(Device.fcm_token == fcm_token, Device.device_id != device_id)
                .delete(synchronize_session=False)
            )
            if evicted:
                logger.info("Token reassigned to device %s, evicted %d old binding(s)", device_id, evicted)

            db.query(Device).filter(Device.device_id == device_id).update(
                {"active": False}, synchronize_session=False
            )

            device = db.query(Device).filter(Device.device_id == device_id).populate_existing().first()
            now = datetime.now(timezone.utc)
            if device is None:
                device = Device(device_id=device_id, created_at=now)
                db.add(device)

            device.user_id = user_id
            device.game_id = game_id
            device.fcm_token = fcm_token
            device.platform = platform or None
            device.app_version = app_version or None
            device.active = True
            device.updated_at = now

            db.commit()
            db.refresh(device)
        except Exception:
            db.rollback()
            raise

        logger.info("Registered device %s for user %s", device.device_id, device.user_id)
        return RegisteredDevice(
            device_id=device.device_id,
            user_id=device.user_id,
            fcm_token=device.fcm_token,
        )

    @staticmethod
    def get_tokens_by_user_id(db: Session, user_id: int) -> List[str]:
        rows = (
            db.query(Device.fcm_token)
            .filter(Device.user_id == user_id, Device.active == True)  # noqa: E712
            .order_by(Device.device_id)
            .all()
        )
        return [row.fcm_token for row in rows]

    @staticmethod
    def get_active_tokens_page(db: Session, limit: int, offset: int) -> List[str]:
        """Most recently updated first; device id breaks ties so pages stay stable."""
        rows = (
            db.query(Device.fcm_token)
            .filter(Device.active == True)  # noqa: E712
            .order_by(Device.updated_at.desc(), Device.device_id.asc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [row.fcm_token for row in rows]

    @staticmethod
    def count_active_tokens(db: Session) -> int:
        count = db.query(func.count(Device.device_id)).filter(Device.active == True).scalar()  # noqa: E712
        return count or 0

    @staticmethod
    def delete_token(db: Session, token: str) -> int:
        try:
            removed = db.query(Device).filter(Device.fcm_token == token).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return removed

    @staticmethod
    def delete_by_identifiers(
        db: Session,
        device_id: str,
        fcm_token: str,
        user_id: int,
        game_id: int,
    ) -> int:
        """Delete the device only if all four identifiers match. Returns rows removed."""
        try:
            removed = (
                db.query(Device)
                .filter(
                    Device.device_id == device_id,
                    Device.fcm_token == fcm_token,
                    Device.user_id == user_id,
                    Device.game_id == game_id,
                )
                .delete(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Removed %d device row(s) for device %s", removed, device_id)
        return removed
