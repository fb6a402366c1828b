from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from pushrelay.db.session import SessionLocal
from pushrelay.services.notification_service import NotificationService


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service
