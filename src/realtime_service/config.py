from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "realtime"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "realtime.notifications"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: int = 30
    # "user_id": the auth frame's userId is trusted once the user exists.
    # "token": the auth frame must also carry a JWT whose sub matches userId.
    WS_AUTH_MODE: Literal["user_id", "token"] = "user_id"
    WS_MAX_UNAUTHENTICATED_FRAMES: int = 5

    PRESENCE_GRACE_SECONDS: float = 5.0
    PRESENCE_LIVENESS_SECONDS: float = 0.0

    CALL_RING_TIMEOUT_SECONDS: float = 45.0
    CALL_NEGOTIATION_TIMEOUT_SECONDS: float = 60.0
    CALL_ACTIVE_TIMEOUT_SECONDS: float = 4 * 3600.0
    CALL_REAPER_INTERVAL_SECONDS: float = 5.0

    HISTORY_PAGE_LIMIT: int = 50

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


settings = Settings()
