"""
Topic Storage - Base Interface

Durable mapping from key to a serialized record. The engine only needs
get/set/delete with read-your-writes consistency within a turn.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class TopicStorage(ABC):
    """Abstract key-value store for topic records."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the record stored under ``key`` or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any]) -> None:
        """Store ``value`` under ``key``, replacing any previous record."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""
        pass

    async def touch(self, key: str) -> None:
        """Extend the lifetime of ``key`` without rewriting it.

        Backends without expiry have nothing to do.
        """
        return None

    async def close(self) -> None:
        """Release backend resources."""
        return None


__all__ = ["TopicStorage"]
