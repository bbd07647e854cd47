"""
Application settings.
Loaded from environment variables and an optional .env file.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # AWS
    AWS_REGION: str = "us-east-1"

    # S3 (when set, chat attachments are stored in S3)
    S3_BUCKET_NAME: Optional[str] = None
    S3_REGION: Optional[str] = None  # defaults to AWS_REGION

    # Membership store: "memory" or "redis"
    CHAT_STORE_BACKEND: str = "memory"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_KEY_PREFIX: str = "chat"

    # Message authorship records (edit/delete checks)
    MAX_AUTHOR_RECORDS: int = 10000  # in-memory store, oldest evicted first
    AUTHOR_RECORD_TTL_SECONDS: int = 86400  # redis store

    # Routing labels
    GENERAL_ROOM: str = "general"
    GROUP_ID_PREFIX: str = "group-"
    CONVERSATION_KEY_SEPARATOR: str = "-"

    # Initial chat config, changed at runtime by updateConfig / admin toggle
    CHAT_ENABLED: bool = True
    CHAT_GENERAL_ONLY: bool = False
    CHAT_ALLOW_GROUP_CREATION: bool = True

    # Optional
    DEBUG: bool = False
    PROJECT_NAME: str = "Meeting Chat Backend"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Local uploads fallback when S3_BUCKET_NAME is not set
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 25 * 1024 * 1024

    @property
    def use_s3(self) -> bool:
        return bool(self.S3_BUCKET_NAME)

    @property
    def use_redis_store(self) -> bool:
        return self.CHAT_STORE_BACKEND.lower() == "redis"

    @property
    def s3_region(self) -> str:
        return self.S3_REGION or self.AWS_REGION

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
