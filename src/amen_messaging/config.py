from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str = "amen"
    POSTGRES_PASSWORD: str = "amen"
    POSTGRES_DB: str = "amen_messaging"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWT_AUDIENCE: str | None = None

    CORS_ORIGINS: list[str] = ["*"]

    OUTBOX_POLL_INTERVAL: float = 1.0
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5

    WS_HEARTBEAT_SECONDS: int = 30
    WS_SEND_QUEUE_SIZE: int = 256

    SLOW_REQUEST_MS: float = 1000.0

    REDIS_PUBSUB_CHANNEL: str = "messaging.fanout"
    TYPING_KEY_PREFIX: str = "messaging:typing"
    NOTIFICATIONS_STREAM: str = "messaging.notifications"

    PROFILE_EVENTS_STREAM: str = "profile.events"
    PROFILE_EVENTS_GROUP: str = "messaging-service"

    STORAGE_BASE_URL: str = "http://localhost:9000/attachments"
    STORAGE_PUBLIC_URL: str | None = None
    STORAGE_API_KEY: str = ""
    STORAGE_TIMEOUT_SECONDS: float = 30.0

    MAX_MESSAGE_LENGTH: int = 10_000
    MAX_ATTACHMENTS: int = 10
    MAX_ATTACHMENT_BYTES: int = 25 * 1024 * 1024
    MAX_REACTION_LENGTH: int = 16
    MAX_GROUP_NAME_LENGTH: int = 50
    MAX_PINNED_CONVERSATIONS: int = 3
    MESSAGE_SEARCH_LIMIT: int = 100
    PENDING_REQUEST_MESSAGE_LIMIT: int = 1
    TYPING_TIMEOUT_SECONDS: float = 5.0

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
