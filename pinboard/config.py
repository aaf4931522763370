from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Core
    APP_NAME: str = "Pinboard"
    APP_SECRET_KEY: str = "change-this-secret"
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:3000"

    # Auth
    AUTH_TOKEN_TTL_SECONDS: int = 7 * 86400

    # DB (falls back to demo mode when unreachable at startup)
    DATABASE_URL: str = "sqlite:///./data/pinboard.db"
    DATABASE_CONNECT_TIMEOUT_SECONDS: int = 5

    # Images
    IMAGE_BACKEND: str = "local"  # local|s3
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10_000_000

    # AWS / S3
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: str = "pinboard-images"
    IMAGES_PREFIX: str = "pins/"

    # Feed
    FEED_DEFAULT_PAGE_SIZE: int = 12
    FEED_MAX_PAGE_SIZE: int = 100
    HISTORY_LIMIT: int = 20

    # Events kept for polling clients
    EVENTS_BACKLOG: int = 200

settings = Settings()
