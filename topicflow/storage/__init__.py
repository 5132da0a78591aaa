"""
Topic Storage

Backends holding serialized topic records between turns.
"""

from typing import Optional

from ..config import Settings, get_settings
from .base import TopicStorage
from .memory import MemoryStorage
from .redis_store import RedisStorage


def create_storage(settings: Optional[Settings] = None) -> TopicStorage:
    """Create the storage backend named by ``settings.storage_backend``."""
    settings = settings or get_settings()

    if settings.storage_backend == "memory":
        return MemoryStorage()
    if settings.storage_backend == "redis":
        return RedisStorage(
            redis_url=settings.redis_url,
            ttl_seconds=settings.state_ttl_seconds,
        )

    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")


__all__ = [
    "TopicStorage",
    "MemoryStorage",
    "RedisStorage",
    "create_storage",
]
