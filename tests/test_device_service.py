from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from pushrelay.models.device_model import Device
from pushrelay.services.device_service import DeviceService


def _register(db, device_id, token, user_id=7, game_id=3, **kwargs):
    return DeviceService.upsert_device(
        db=db, device_id=device_id, fcm_token=token, user_id=user_id, game_id=game_id, **kwargs
    )


class TestUpsertDevice:
    def test_returns_registered_binding(self, db):
        result = _register(db, "d1", "tok-a")

        assert result.device_id == "d1"
        assert result.user_id == 7
        assert result.fcm_token == "tok-a"

    def test_reregistering_replaces_token_in_place(self, db):
        _register(db, "d1", "tok-a")
        _register(db, "d1", "tok-b")

        rows = db.query(Device).filter(Device.device_id == "d1").all()
        assert len(rows) == 1
        assert rows[0].fcm_token == "tok-b"
        assert rows[0].active is True
        assert db.query(Device).filter(Device.fcm_token == "tok-a").count() == 0

    def test_token_moves_to_new_device(self, db):
        _register(db, "d1", "tok-a", user_id=1)
        _register(db, "d2", "tok-a", user_id=2)

        assert db.query(Device).filter(Device.device_id == "d1").first() is None
        holder = db.query(Device).filter(Device.fcm_token == "tok-a").one()
        assert holder.device_id == "d2"
        assert DeviceService.get_tokens_by_user_id(db, 1) == []
        assert DeviceService.get_tokens_by_user_id(db, 2) == ["tok-a"]

    def test_reactivates_inactive_device(self, db):
        _register(db, "d1", "tok-a")
        db.query(Device).filter(Device.device_id == "d1").update({"active": False})
        db.commit()

        _register(db, "d1", "tok-a")

        assert DeviceService.get_tokens_by_user_id(db, 7) == ["tok-a"]

    def test_optional_fields(self, db):
        result = DeviceService.upsert_device(db=db, device_id="d1", fcm_token="tok-a", platform="", app_version="2.1.0")

        device = db.query(Device).filter(Device.device_id == "d1").one()
        assert result.user_id is None
        assert device.game_id is None
        assert device.platform is None
        assert device.app_version == "2.1.0"

    def test_failed_commit_keeps_previous_state(self, db, session_factory, monkeypatch):
        _register(db, "d1", "tok-a")

        def failing_commit():
            raise SQLAlchemyError("commit failed")

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(SQLAlchemyError):
            _register(db, "d2", "tok-a")

        other = session_factory()
        try:
            rows = other.query(Device).all()
            assert [(row.device_id, row.fcm_token) for row in rows] == [("d1", "tok-a")]
        finally:
            other.close()


class TestLookups:
    def test_tokens_for_user_skip_inactive_devices(self, db):
        _register(db, "d1", "tok-a")
        _register(db, "d2", "tok-b")
        _register(db, "d3", "tok-c", user_id=8)
        db.query(Device).filter(Device.device_id == "d2").update({"active": False})
        db.commit()

        assert DeviceService.get_tokens_by_user_id(db, 7) == ["tok-a"]

    def test_active_page_order(self, db):
        now = datetime.now(timezone.utc)
        for device_id, age in (("d1", 3), ("d2", 1), ("d3", 1), ("d4", 0)):
            _register(db, device_id, f"tok-{device_id}")
            db.query(Device).filter(Device.device_id == device_id).update(
                {"updated_at": now - timedelta(minutes=age)}
            )
        db.commit()

        assert DeviceService.get_active_tokens_page(db, limit=10, offset=0) == [
            "tok-d4",
            "tok-d2",
            "tok-d3",
            "tok-d1",
        ]
        assert DeviceService.get_active_tokens_page(db, limit=2, offset=2) == ["tok-d3", "tok-d1"]

    def test_count_active(self, db):
        assert DeviceService.count_active_tokens(db) == 0
        _register(db, "d1", "tok-a")
        _register(db, "d2", "tok-b")
        db.query(Device).filter(Device.device_id == "d2").update({"active": False})
        db.commit()

        assert DeviceService.count_active_tokens(db) == 1


class TestDeletion:
    def test_delete_token(self, db):
        _register(db, "d1", "tok-a")

        assert DeviceService.delete_token(db, "tok-a") == 1
        assert DeviceService.delete_token(db, "tok-a") == 0
        assert db.query(Device).count() == 0

    def test_delete_by_identifiers_requires_exact_match(self, db):
        _register(db, "d1", "tok-a", user_id=7, game_id=3)

        assert DeviceService.delete_by_identifiers(db, "d1", "tok-a", 7, 4) == 0
        assert DeviceService.delete_by_identifiers(db, "d1", "tok-b", 7, 3) == 0
        assert db.query(Device).count() == 1

        assert DeviceService.delete_by_identifiers(db, "d1", "tok-a", 7, 3) == 1
        assert db.query(Device).count() == 0
