import asyncio
import logging
from typing import Awaitable, Callable, Optional

from arq import create_pool
from arq.connections import RedisSettings
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from pushrelay.common.constants import EventBusDefaults

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Awaitable[None]]


class RedisEventBus:
    """Topic based event bus on Redis Streams; one stream per topic, consumer groups per reader."""

    def __init__(
        self, redis: Redis, consumer_name: str, retry_delay: float = EventBusDefaults.BLOCK_MS / 1000
    ):
        self.redis = redis
        self.consumer_name = consumer_name
        self.retry_delay = retry_delay

    async def ensure_topic(self, topic: str, group_id: Optional[str] = None) -> None:
        """Create the stream (and consumer group) if missing. Safe to call repeatedly."""
        if group_id is None:
            if await self.redis.exists(topic):
                logger.info("Topic %s already exists, connecting to it", topic)
            else:
                logger.info("Topic %s does not exist yet, it is created on first publish", topic)
            return

        try:
            # id "0" so a new group starts from the beginning of the stream
            await self.redis.xgroup_create(topic, group_id, id="0", mkstream=True)
            logger.info("Created topic %s with consumer group %s", topic, group_id)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                logger.error("Failed to create topic %s: %s", topic, exc)
                raise
            logger.info("Topic %s already exists, connecting to it", topic)

    async def publish(self, topic: str, message: bytes) -> str:
        try:
            message_id = await self.redis.xadd(topic, {EventBusDefaults.MESSAGE_FIELD: message})
        except Exception as exc:
            logger.error("Failed to write message to topic %s: %s", topic, exc)
            raise
        logger.debug("Wrote message %s to topic %s", message_id, topic)
        return message_id.decode() if isinstance(message_id, bytes) else message_id

    async def subscribe(self, topic: str, group_id: str, handler: MessageHandler) -> None:
        """
        Consume ``topic`` as part of ``group_id`` until cancelled.

        Messages are handled one at a time and acknowledged after the
        handler returns. A failing handler, a failed read or a failed
        acknowledgement is logged and the loop moves on.
        """
        await self.ensure_topic(topic, group_id)
        logger.info("Consuming topic %s as %s in group %s", topic, self.consumer_name, group_id)

        while True:
            try:
                batches = await self.redis.xreadgroup(
                    group_id,
                    self.consumer_name,
                    {topic: ">"},
                    count=EventBusDefaults.READ_COUNT,
                    block=EventBusDefaults.BLOCK_MS,
                )
            except RedisConnectionError as exc:
                logger.error("Event bus connection error on topic %s: %s", topic, exc)
                await asyncio.sleep(self.retry_delay)
                continue
            except Exception as exc:
                logger.error("Failed to read from topic %s: %s", topic, exc)
                await self._recover_group(topic, group_id, exc)
                await asyncio.sleep(self.retry_delay)
                continue

            for _stream, messages in batches or []:
                for message_id, fields in messages:
                    await self._handle_one(topic, group_id, message_id, fields, handler)

    async def _recover_group(self, topic: str, group_id: str, exc: Exception) -> None:
        # the stream or group was deleted under us
        if not isinstance(exc, ResponseError) or "NOGROUP" not in str(exc):
            return
        try:
            await self.ensure_topic(topic, group_id)
        except Exception as ensure_exc:
            logger.error("Failed to recreate consumer group %s on topic %s: %s", group_id, topic, ensure_exc)

    async def _handle_one(self, topic, group_id, message_id, fields, handler: MessageHandler) -> None:
        value = fields.get(EventBusDefaults.MESSAGE_FIELD.encode()) or fields.get(EventBusDefaults.MESSAGE_FIELD)
        try:
            if value:
                await handler(value if isinstance(value, bytes) else str(value).encode())
        except Exception:
            logger.exception("Handler failed for message %s on topic %s", message_id, topic)

        try:
            await self.redis.xack(topic, group_id, message_id)
        except Exception as exc:
            # left pending in the group; redelivered only on explicit claim
            logger.error("Failed to acknowledge message %s on topic %s: %s", message_id, topic, exc)

    async def close(self) -> None:
        await self.redis.aclose()


async def create_event_bus(redis_settings: RedisSettings, client_id: str) -> RedisEventBus:
    redis = await create_pool(redis_settings)
    logger.info(
        "Initializing event bus with redis %s:%s/%s, client %s",
        redis_settings.host,
        redis_settings.port,
        redis_settings.database,
        client_id,
    )
    return RedisEventBus(redis, consumer_name=client_id)
