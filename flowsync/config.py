from __future__ import annotations

import os
from typing import Optional, Literal

import yaml
from pydantic import BaseModel


class RedisConfig(BaseModel):
    """Configuration for the Redis storage backend."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    prefix: str = "flowsync:"


class StorageConfig(BaseModel):
    """Durable key-value storage settings."""

    backend: Literal["inmemory", "sqlite", "redis"] = "inmemory"
    path: str = "flowsync.db"
    redis: RedisConfig = RedisConfig()


class CatalogConfig(BaseModel):
    """Remote catalog endpoint settings."""

    listing_url: Optional[str] = None
    timeout: float = 10.0
    retries: int = 2


class BackupConfig(BaseModel):
    """Remote backup API used when deleting hosted or backed up workflows."""

    api_url: Optional[str] = None
    token: Optional[str] = None


class SyncConfig(BaseModel):
    """Reconciliation pass settings."""

    interval_seconds: float = 600.0
    check_update_date: bool = True
    max_concurrent_fetches: int = 4


class FlowSyncConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageConfig = StorageConfig()
    catalog: CatalogConfig = CatalogConfig()
    backup: BackupConfig = BackupConfig()
    sync: SyncConfig = SyncConfig()


def load_config(path: Optional[str] = None) -> FlowSyncConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWSYNC_CONFIG env
            variable or 'flowsync.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWSYNC_CONFIG", "flowsync.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowSyncConfig(**data)
    else:
        config = FlowSyncConfig()

    env_storage = os.getenv("FLOWSYNC_STORAGE")
    if env_storage:
        config.storage.backend = env_storage.lower()
    env_catalog_url = os.getenv("FLOWSYNC_CATALOG_URL")
    if env_catalog_url:
        config.catalog.listing_url = env_catalog_url
    env_token = os.getenv("FLOWSYNC_BACKUP_TOKEN")
    if env_token:
        config.backup.token = env_token
    return config
