import asyncio
import json
import logging

import pytest

from pushrelay.events.handlers import handle_notification_message, normalize_image_url, parse_user_id
from pushrelay.services.device_service import DeviceService


def _event(**data):
    return json.dumps({"eventName": "SendUserNotification", "data": data}).encode()


def _handle(raw, service, session_factory):
    asyncio.run(handle_notification_message(raw, service, session_factory))


@pytest.fixture()
def devices(db):
    DeviceService.upsert_device(db=db, device_id="d1", fcm_token="tok-a", user_id=7, game_id=1)
    DeviceService.upsert_device(db=db, device_id="d2", fcm_token="tok-b", user_id=7, game_id=1)


@pytest.mark.parametrize(
    "value, expected",
    [
        (7, 7),
        ("42", 42),
        (" 42 ", 42),
        (3.0, 3),
        (2**63 - 1, 2**63 - 1),
        (0, None),
        (-5, None),
        (2**63, None),
        (str(2**63), None),
        ("abc", None),
        ("4.5", None),
        (True, None),
        (None, None),
        ("", None),
    ],
)
def test_parse_user_id(value, expected):
    assert parse_user_id(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://cdn.example.com/a.png", "https://cdn.example.com/a.png"),
        ("  http://example.com/x.jpg ", "http://example.com/x.jpg"),
        ("ftp://example.com/a.png", None),
        ("/relative/a.png", None),
        ("example.com/a.png", None),
        ("", None),
        (123, None),
        (None, None),
    ],
)
def test_normalize_image_url(value, expected):
    assert normalize_image_url(value) == expected


class TestSendUserNotification:
    def test_dispatches_data_only_payload(self, service, provider, session_factory, devices):
        _handle(
            _event(userId="7", title="Hi", body="New message", chatId="c-1", route="/chat", image="https://x.io/i.png"),
            service,
            session_factory,
        )

        assert len(provider.batches) == 1
        tokens, payload = provider.batches[0]
        assert sorted(tokens) == ["tok-a", "tok-b"]
        assert payload.data_only is True
        assert payload.priority == "high"
        assert payload.data == {
            "eventName": "SendUserNotification",
            "chatId": "c-1",
            "title": "Hi",
            "route": "/chat",
            "body": "New message",
            "image": "https://x.io/i.png",
        }

    def test_bad_image_is_dropped(self, service, provider, session_factory, devices):
        _handle(_event(userId=7, title="Hi", body="There", image="javascript:alert(1)"), service, session_factory)

        _, payload = provider.batches[0]
        assert payload.data["image"] == ""
        assert payload.data["chatId"] == ""

    def test_prunes_dead_tokens(self, service, provider, session_factory, devices, db):
        provider.dead = {"tok-a"}

        _handle(_event(userId=7, title="Hi", body="There"), service, session_factory)

        assert DeviceService.get_tokens_by_user_id(db, 7) == ["tok-b"]

    @pytest.mark.parametrize(
        "data",
        [
            {"title": "Hi", "body": "There"},
            {"userId": "abc", "title": "Hi", "body": "There"},
            {"userId": 0, "title": "Hi", "body": "There"},
            {"userId": 7, "body": "There"},
            {"userId": 7, "title": "Hi", "body": ""},
        ],
    )
    def test_invalid_events_are_not_dispatched(self, service, provider, session_factory, devices, data):
        _handle(_event(**data), service, session_factory)

        assert provider.batches == []

    def test_user_without_devices(self, service, provider, session_factory):
        _handle(_event(userId=99, title="Hi", body="There"), service, session_factory)

        assert provider.batches == []


class TestMessageBoundary:
    @pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b'{"eventName": 5}', b"\xff\xfe"])
    def test_malformed_messages_are_dropped(self, service, provider, session_factory, raw):
        _handle(raw, service, session_factory)

        assert provider.batches == []

    def test_unknown_event_is_ignored(self, service, provider, session_factory, devices):
        raw = json.dumps({"eventName": "SomethingElse", "data": {"userId": 7, "title": "a", "body": "b"}}).encode()

        _handle(raw, service, session_factory)

        assert provider.batches == []

    def test_provider_failure_does_not_escape(self, service, provider, session_factory, devices):
        provider.raise_on_batch = 1

        _handle(_event(userId=7, title="Hi", body="There"), service, session_factory)

        assert len(provider.batches) == 1

    def test_unknown_event_with_odd_data_is_logged_as_unhandled(self, service, provider, session_factory, caplog):
        raw = json.dumps({"eventName": "Other", "data": "str"}).encode()

        with caplog.at_level(logging.INFO, logger="pushrelay.events.handlers"):
            _handle(raw, service, session_factory)

        assert "Unhandled event name: Other" in caplog.text
        assert not [record for record in caplog.records if record.levelno >= logging.ERROR]
        assert provider.batches == []

    def test_send_user_notification_with_non_object_data(self, service, provider, session_factory, devices, caplog):
        raw = json.dumps({"eventName": "SendUserNotification", "data": "str"}).encode()

        with caplog.at_level(logging.INFO, logger="pushrelay.events.handlers"):
            _handle(raw, service, session_factory)

        assert "SendUserNotification event has invalid data" in caplog.text
        assert provider.batches == []
