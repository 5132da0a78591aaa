"""Redis storage backend."""

import json
from typing import Any, Dict, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from ..errors import StorageError
from .base import TopicStorage


logger = structlog.get_logger(__name__)


class RedisStorage(TopicStorage):
    """
    Redis-backed storage.

    Records are stored as JSON strings, optionally with a TTL so abandoned
    conversations expire on their own.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        client: Optional["redis.Redis"] = None,
        key_prefix: str = "",
        ttl_seconds: Optional[int] = None,
    ):
        self._redis_url = redis_url
        self._redis = client
        self._owns_client = client is None
        self._key_prefix = key_prefix
        self._ttl_seconds = ttl_seconds

    def _client(self) -> "redis.Redis":
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_storage_connected", url=self._redis_url)
        return self._redis

    def _key(self, key: str) -> str:
        if self._key_prefix:
            return f"{self._key_prefix}:{key}"
        return key

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self._client().get(self._key(key))
        except RedisError as e:
            logger.error("redis_load_error", key=key, error=str(e))
            raise StorageError(f"Failed to load {key}: {e}") from e

        if data is None:
            return None
        return json.loads(data)

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        encoded = json.dumps(value)
        try:
            if self._ttl_seconds:
                await self._client().setex(self._key(key), self._ttl_seconds, encoded)
            else:
                await self._client().set(self._key(key), encoded)
        except RedisError as e:
            logger.error("redis_persist_error", key=key, error=str(e))
            raise StorageError(f"Failed to store {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._client().delete(self._key(key))
        except RedisError as e:
            logger.error("redis_delete_error", key=key, error=str(e))
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def touch(self, key: str) -> None:
        if not self._ttl_seconds:
            return
        try:
            await self._client().expire(self._key(key), self._ttl_seconds)
        except RedisError as e:
            logger.error("redis_expire_error", key=key, error=str(e))
            raise StorageError(f"Failed to refresh {key}: {e}") from e

    async def close(self) -> None:
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None


__all__ = ["RedisStorage"]
