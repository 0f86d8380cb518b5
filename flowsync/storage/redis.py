"""Redis key-value storage for sharing state across processes."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping, Optional

import redis.asyncio as redis

from .base import KeyValueStorage


class RedisStorage(KeyValueStorage):
    """Redis-based storage; every value is kept as a JSON string."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "flowsync:",
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        # Test connection
        await self._redis.ping()

    async def close(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        if not self._redis:
            await self.connect()
        keys = list(keys)
        if not keys:
            return {}
        values = await self._redis.mget([self._key(k) for k in keys])
        return {k: json.loads(v) for k, v in zip(keys, values) if v is not None}

    async def set(self, items: Mapping[str, Any]) -> None:
        if not self._redis:
            await self.connect()
        if not items:
            return
        await self._redis.mset(
            {self._key(k): json.dumps(v) for k, v in items.items()}
        )

    async def remove(self, keys: Iterable[str]) -> None:
        if not self._redis:
            await self.connect()
        keys = [self._key(k) for k in keys]
        if keys:
            await self._redis.delete(*keys)
