"""
Expiring key/value storage for short-lived state such as signup and
password-reset verification codes.

The store is created once in the application lifespan and injected into the
auth routes; nothing here is module-global.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from app.core.logging import get_logger

logger = get_logger(__name__)


class TTLStore(ABC):
    """Key -> JSON-serializable value with per-key expiry."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class MemoryTTLStore(TTLStore):
    """Process-local store. Fine for a single worker and for tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: Dict[str, Tuple[float, str]] = {}

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._items[key] = (self._clock() + ttl_seconds, json.dumps(value))

    async def get(self, key: str) -> Optional[Any]:
        item = self._items.get(key)
        if item is None:
            return None
        expires_at, payload = item
        if self._clock() >= expires_at:
            self._items.pop(key, None)
            return None
        return json.loads(payload)

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)


class RedisTTLStore(TTLStore):
    def __init__(self, client: redis.Redis, prefix: str = "ttl:"):
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._client.setex(self._key(key), ttl_seconds, json.dumps(value))

    async def get(self, key: str) -> Optional[Any]:
        data = await self._client.get(self._key(key))
        if data is None:
            return None
        return json.loads(data)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))
