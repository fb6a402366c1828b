from arq.connections import RedisSettings

from pushrelay.config import settings


def get_redis_settings() -> RedisSettings:
    """Get Redis settings for the event bus from the loaded configuration."""
    return RedisSettings(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        database=settings.REDIS_DB,
    )


REDIS_SETTINGS = get_redis_settings()
