"""flowsync: keep local automation workflows in sync with a remote catalog."""

from .catalog import CatalogClient, HttpCatalog, InMemoryCatalog, get_catalog
from .constants import VERSION
from .contracts import (
    Decision,
    RemoteEntry,
    SyncReport,
    WorkflowGraph,
    WorkflowRecord,
    WorkflowSettings,
)
from .fingerprint import fingerprint
from .host import SyncHost
from .merge import decide, merge_records
from .service import WorkflowService
from .storage import get_storage
from .store import WorkflowStore, default_workflow
from .sync import SyncEngine
from .triggers import InMemoryTriggerRegistry, TriggerHook

__version__ = VERSION
__all__ = [
    "CatalogClient",
    "Decision",
    "HttpCatalog",
    "InMemoryCatalog",
    "InMemoryTriggerRegistry",
    "RemoteEntry",
    "SyncEngine",
    "SyncHost",
    "SyncReport",
    "TriggerHook",
    "WorkflowGraph",
    "WorkflowRecord",
    "WorkflowService",
    "WorkflowSettings",
    "WorkflowStore",
    "decide",
    "default_workflow",
    "fingerprint",
    "get_catalog",
    "get_storage",
    "merge_records",
]
