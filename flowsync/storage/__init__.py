"""Storage factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowSyncConfig, load_config
from .base import KeyValueStorage
from .inmemory import InMemoryStorage
from .sqlite import SQLiteStorage


def get_storage(
    backend: Optional[str] = None, config: Optional[FlowSyncConfig] = None
) -> KeyValueStorage:
    """Factory function to get the configured key-value storage."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("FLOWSYNC_STORAGE")
        or config.storage.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryStorage()
    elif backend == "sqlite":
        return SQLiteStorage(config.storage.path)
    elif backend == "redis":
        from .redis import RedisStorage

        redis_conf = config.storage.redis
        return RedisStorage(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            prefix=redis_conf.prefix,
        )
    else:
        raise ValueError(f"Unsupported storage backend: {backend}")


__all__ = ["KeyValueStorage", "InMemoryStorage", "SQLiteStorage", "get_storage"]
