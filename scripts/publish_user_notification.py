import argparse
import asyncio
import json

from pushrelay.common.constants import EventNames
from pushrelay.config import settings
from pushrelay.core.redis_config import REDIS_SETTINGS
from pushrelay.events.bus import create_event_bus


def build_event(args: argparse.Namespace) -> dict:
    data = {"userId": args.user_id, "title": args.title, "body": args.body}
    for key, value in (("image", args.image), ("chatId", args.chat_id), ("route", args.route)):
        if value:
            data[key] = value
    return {"eventName": EventNames.SEND_USER_NOTIFICATION, "data": data}


async def publish(event: dict, topic: str) -> str:
    bus = await create_event_bus(REDIS_SETTINGS, settings.EVENT_CLIENT_ID)
    try:
        await bus.ensure_topic(topic)
        return await bus.publish(topic, json.dumps(event).encode())
    finally:
        await bus.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Publish a SendUserNotification event")
    parser.add_argument("user_id", type=int)
    parser.add_argument("title")
    parser.add_argument("body")
    parser.add_argument("--image")
    parser.add_argument("--chat-id")
    parser.add_argument("--route")
    parser.add_argument("--topic", default=settings.EVENT_WRITE_TOPIC)
    args = parser.parse_args()

    if not args.topic:
        parser.error("EVENT_WRITE_TOPIC is not set and --topic was not given")

    message_id = asyncio.run(publish(build_event(args), args.topic))
    print(f"Published {EventNames.SEND_USER_NOTIFICATION} to {args.topic}: {message_id}")


if __name__ == "__main__":
    main()
