import asyncio
import logging
import time
from functools import partial

from fastapi import FastAPI
from sqlalchemy import text

from pushrelay.api.errors import register_error_handlers
from pushrelay.api.v1.router import api_router
from pushrelay.config import settings
from pushrelay.core.firebase_config import init_firebase
from pushrelay.core.logging_config import setup_logging
from pushrelay.core.redis_config import REDIS_SETTINGS
from pushrelay.events.bus import create_event_bus
from pushrelay.events.handlers import handle_notification_message
from pushrelay.services.notification_service import NotificationService
from pushrelay.services.push_provider import FirebasePushProvider

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Notification Service", version="1.0.0", docs_url="/docs")

register_error_handlers(app)

# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"ok": True}


def wait_for_database(engine, max_retries: int = 5, retry_delay: int = 2) -> None:
    """Block until the database answers, retrying a few times."""
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established")
            return
        except Exception as e:
            logger.warning("Database connection attempt %d failed: %s", attempt + 1, e)
            if attempt < max_retries - 1:
                time.sleep(retry_delay)
            else:
                logger.error("Failed to connect to database after all retries")
                raise


def log_consumer_exit(task: asyncio.Task) -> None:
    """Done-callback for the event consumer task; the loop only ends on error or cancel."""
    if task.cancelled():
        logger.info("Event consumer stopped")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Event consumer stopped unexpectedly", exc_info=exc)


@app.on_event("startup")
async def startup_event():
    """Connect to the database, build the push client and start the event consumer."""
    from pushrelay.db.session import SessionLocal, engine

    wait_for_database(engine)

    firebase_app = init_firebase(settings.FIREBASE_CREDENTIALS_PATH)
    service = NotificationService(
        provider=FirebasePushProvider(firebase_app),
        session_factory=SessionLocal,
        batch_size=settings.PUSH_BATCH_SIZE,
        broadcast_page_size=settings.BROADCAST_PAGE_SIZE,
        prune_concurrency=settings.PRUNE_CONCURRENCY,
    )
    app.state.notification_service = service

    if settings.EVENT_READ_TOPIC:
        bus = await create_event_bus(REDIS_SETTINGS, settings.EVENT_CLIENT_ID)
        app.state.event_bus = bus
        handler = partial(handle_notification_message, service=service, session_factory=SessionLocal)
        await bus.ensure_topic(settings.EVENT_READ_TOPIC, settings.EVENT_GROUP_ID)
        consumer = asyncio.create_task(bus.subscribe(settings.EVENT_READ_TOPIC, settings.EVENT_GROUP_ID, handler))
        consumer.add_done_callback(log_consumer_exit)
        app.state.event_consumer = consumer

    logger.info("Notification service started on port %s", settings.port)


@app.on_event("shutdown")
async def shutdown_event():
    consumer = getattr(app.state, "event_consumer", None)
    if consumer is not None and not consumer.done():
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
    if hasattr(app.state, "event_bus"):
        await app.state.event_bus.close()


def run() -> None:
    import uvicorn

    uvicorn.run("pushrelay.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
