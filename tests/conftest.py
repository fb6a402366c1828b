import os

# Keep the module-level engine off PostgreSQL while tests import the package
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from pushrelay.api.deps import get_db  # noqa: E402
from pushrelay.api.errors import register_error_handlers  # noqa: E402
from pushrelay.api.v1.router import api_router  # noqa: E402
from pushrelay.db.base import Base  # noqa: E402
from pushrelay.services.notification_service import NotificationService  # noqa: E402
from pushrelay.services.push_provider import (  # noqa: E402
    MulticastResult,
    TokenResult,
    UNREGISTERED_CODE,
)


class FakePushProvider:
    """Records every call; tokens listed in ``dead``/``failing`` fail in multicast."""

    def __init__(self):
        self.batches = []
        self.single = []
        self.dead = set()
        self.failing = set()
        self.raise_on_batch = None
        self.single_error = None

    def send_one(self, token, payload):
        self.single.append((token, payload))
        if self.single_error is not None:
            raise self.single_error
        return f"projects/test/messages/{len(self.single)}"

    def send_multicast(self, tokens, payload):
        self.batches.append((list(tokens), payload))
        if self.raise_on_batch == len(self.batches):
            raise RuntimeError("provider unavailable")

        responses = []
        for token in tokens:
            if token in self.dead:
                responses.append(
                    TokenResult(token=token, success=False, error_code=UNREGISTERED_CODE, error_message="gone")
                )
            elif token in self.failing:
                responses.append(
                    TokenResult(token=token, success=False, error_code="messaging/internal-error", error_message="try later")
                )
            else:
                responses.append(TokenResult(token=token, success=True, message_id=f"msg-{token}"))

        succeeded = sum(1 for r in responses if r.success)
        return MulticastResult(
            success_count=succeeded,
            failure_count=len(responses) - succeeded,
            responses=responses,
        )


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'devices.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def provider():
    return FakePushProvider()


@pytest.fixture()
def service(provider, session_factory):
    return NotificationService(provider=provider, session_factory=session_factory)


@pytest.fixture()
def client(service, session_factory):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(api_router)
    app.state.notification_service = service

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    return TestClient(app)
