"""In-process storage backend."""

import asyncio
import json
from typing import Any, Dict, Optional

from .base import TopicStorage


class MemoryStorage(TopicStorage):
    """
    Dict-backed storage.

    Records are kept JSON-encoded so non-serializable state fails on write
    and a loaded record never aliases a live object.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        encoded = json.dumps(value)
        async with self._lock:
            self._data[key] = encoded

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


__all__ = ["MemoryStorage"]
