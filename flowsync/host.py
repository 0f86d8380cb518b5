"""Wiring of the engine for a host process."""

from __future__ import annotations

import logging
from typing import Optional

from .backup import BackupClient
from .catalog import CatalogClient, get_catalog
from .config import FlowSyncConfig, load_config
from .contracts import SyncReport
from .service import WorkflowService
from .storage import KeyValueStorage, get_storage
from .store import WorkflowStore
from .sync import SyncEngine
from .triggers import InMemoryTriggerRegistry, TriggerHook

logger = logging.getLogger(__name__)


class SyncHost:
    """Owns the store, mutation API and sync engine of one host process.

    The host calls :meth:`start` once, :meth:`on_installed` when the
    application is installed or updated, :meth:`on_startup` when it is
    launched, and :meth:`stop` on shutdown.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        catalog: CatalogClient,
        triggers: Optional[TriggerHook] = None,
        backup: Optional[BackupClient] = None,
        config: Optional[FlowSyncConfig] = None,
    ) -> None:
        self.config = config or FlowSyncConfig()
        self.storage = storage
        self.catalog = catalog
        self.triggers = triggers or InMemoryTriggerRegistry()
        self.backup = backup
        self.store = WorkflowStore(storage)
        self.service = WorkflowService(self.store, self.triggers, backup=backup)
        self.engine = SyncEngine(
            self.store,
            catalog,
            self.triggers,
            check_update_date=self.config.sync.check_update_date,
            max_concurrent_fetches=self.config.sync.max_concurrent_fetches,
            interval=self.config.sync.interval_seconds,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[FlowSyncConfig] = None,
        triggers: Optional[TriggerHook] = None,
    ) -> "SyncHost":
        """Build a host from configuration (see :func:`load_config`)."""
        config = config or load_config()
        backup = None
        if config.backup.api_url:
            backup = BackupClient(config.backup.api_url, token=config.backup.token)
        return cls(
            storage=get_storage(config=config),
            catalog=get_catalog(config=config),
            triggers=triggers,
            backup=backup,
            config=config,
        )

    async def start(self) -> Optional[SyncReport]:
        """Load records, run the startup pass and start the periodic loop."""
        await self.store.load()
        report = await self.engine.run_sync_pass(reason="startup")
        self.engine.start()
        logger.info(
            f"Sync host started with {len(self.store)} workflows, "
            f"syncing every {self.engine.interval:g}s"
        )
        return report

    async def on_installed(self) -> Optional[SyncReport]:
        await self.store.load()
        return await self.engine.run_sync_pass(reason="installed")

    async def on_startup(self) -> Optional[SyncReport]:
        await self.store.load()
        return await self.engine.run_sync_pass(reason="startup")

    async def stop(self) -> None:
        await self.engine.stop()
        await self.catalog.close()
        if self.backup is not None:
            await self.backup.close()
        await self.storage.close()
