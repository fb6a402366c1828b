from functools import lru_cache
from typing import Optional
from urllib.parse import quote_plus

from dotenv import find_dotenv, load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# FCM multicast ceiling
MAX_MULTICAST_TOKENS = 500


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: Optional[str] = None
    PGHOST: str = "localhost"
    PGPORT: int = 5432
    PGUSER: str = "postgres"
    PGPASSWORD: str = ""
    PGDATABASE: str = "notifications"
    PGSSL: bool = False

    # Firebase
    FIREBASE_CREDENTIALS_PATH: str = "firebase-adminsdk.json"

    # Redis (event bus)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    EVENT_CLIENT_ID: str = "default-client"
    EVENT_READ_TOPIC: Optional[str] = None
    EVENT_WRITE_TOPIC: Optional[str] = None
    EVENT_GROUP_ID: Optional[str] = None

    # HTTP
    APP_PORT: Optional[int] = None
    PORT: int = 3000

    # Dispatch
    PUSH_BATCH_SIZE: int = Field(default=MAX_MULTICAST_TOKENS, ge=1, le=MAX_MULTICAST_TOKENS)
    BROADCAST_PAGE_SIZE: int = Field(default=20, ge=1)
    PRUNE_CONCURRENCY: int = Field(default=10, ge=1)

    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def _check_event_bus(self) -> "Settings":
        if self.EVENT_READ_TOPIC and not self.EVENT_GROUP_ID:
            raise ValueError("EVENT_GROUP_ID is required when EVENT_READ_TOPIC is set")
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        # URL encode the password to handle special characters
        password = quote_plus(self.PGPASSWORD)
        url = f"postgresql://{self.PGUSER}:{password}@{self.PGHOST}:{self.PGPORT}/{self.PGDATABASE}"
        if self.PGSSL:
            url += "?sslmode=require"
        return url

    @property
    def port(self) -> int:
        return self.APP_PORT or self.PORT


@lru_cache
def get_settings() -> Settings:
    # export .env into os.environ before anything reads it
    load_dotenv(find_dotenv(usecwd=True))
    return Settings()


settings = get_settings()
