"""Configuration for the topic engine."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOPICFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service settings
    service_name: str = "topicflow"
    log_level: str = "info"
    log_format: str = "pretty"  # json, pretty

    # Storage
    storage_backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "topicflow"
    state_ttl_seconds: Optional[int] = None

    # Turn processing
    max_dispatch_depth: int = 32
    delete_ended_topics: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
