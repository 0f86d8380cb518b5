"""Local record store backed by durable key-value storage."""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .constants import FIRST_TIME_KEY, TRIGGER_LABEL, WORKFLOWS_KEY
from .contracts import WorkflowRecord, now_ms
from .defaults import FIRST_WORKFLOWS
from .errors import PersistenceFailed
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


def _default_trigger_node() -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "label": TRIGGER_LABEL,
        "type": "BlockBasic",
        "position": {"x": 100, "y": 300},
        "data": {"type": "manual", "interval": 60, "delay": 5},
    }


def default_workflow(
    data: Mapping[str, Any] | None = None,
    duplicate_id: bool = False,
    clock: Callable[[], int] = now_ms,
) -> WorkflowRecord:
    """Build a new record from ``data`` with every missing field defaulted.

    A fresh id is assigned when ``data`` carries none or ``duplicate_id`` is
    set. A graph without nodes gets a single trigger node.
    """
    payload = copy.deepcopy(dict(data or {}))
    if duplicate_id or not payload.get("id"):
        payload["id"] = str(uuid.uuid4())

    now = clock()
    payload.setdefault("createdAt", now)
    payload.setdefault("updatedAt", now)

    record = WorkflowRecord.model_validate(payload)
    if not record.graph.nodes:
        record.graph.nodes.append(_default_trigger_node())
        record.refresh_fingerprint()
    return record


class WorkflowStore:
    """In-memory map of workflow records with batched persistence.

    The store is the only owner of the record map. Every mutation path
    (sync passes, local edits, deletions) must hold :attr:`lock` while it
    reads, modifies and writes records, and calls :meth:`persist` once per
    batch.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        defaults: Iterable[Mapping[str, Any]] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._storage = storage
        self._defaults = list(FIRST_WORKFLOWS if defaults is None else defaults)
        self._clock = clock
        self._records: Dict[str, WorkflowRecord] = {}
        self._loaded = False
        self.is_first_time = False
        self.lock = asyncio.Lock()

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    @property
    def clock(self) -> Callable[[], int]:
        return self._clock

    @property
    def loaded(self) -> bool:
        return self._loaded

    # ------------------------------------------------------------------
    async def load(self) -> Dict[str, WorkflowRecord]:
        """Read persisted records, seeding the bundled defaults on first run."""
        if self._loaded:
            return self._records

        stored = await self._storage.get([WORKFLOWS_KEY, FIRST_TIME_KEY])
        first_time = bool(stored.get(FIRST_TIME_KEY)) or (
            FIRST_TIME_KEY not in stored and WORKFLOWS_KEY not in stored
        )

        if first_time:
            records = [
                default_workflow(item, clock=self._clock) for item in self._defaults
            ]
            self._records = {record.id: record for record in records}
            await self._storage.set(
                {
                    FIRST_TIME_KEY: False,
                    WORKFLOWS_KEY: self._serialize(),
                }
            )
            logger.info(f"Seeded {len(records)} default workflows on first run")
        else:
            self._records = self._deserialize(stored.get(WORKFLOWS_KEY) or {})

        self.is_first_time = first_time
        self._loaded = True
        return self._records

    def _deserialize(self, raw: Any) -> Dict[str, WorkflowRecord]:
        items = raw.values() if isinstance(raw, Mapping) else raw
        records: Dict[str, WorkflowRecord] = {}
        for item in items:
            record = WorkflowRecord.from_storage(item)
            records[record.id] = record
        return records

    def _serialize(self) -> Dict[str, Any]:
        return {wid: record.to_storage() for wid, record in self._records.items()}

    # ------------------------------------------------------------------
    def get(self, workflow_id: str) -> Optional[WorkflowRecord]:
        return self._records.get(workflow_id)

    def all(self) -> List[WorkflowRecord]:
        return list(self._records.values())

    def ids(self) -> List[str]:
        return list(self._records)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, record: WorkflowRecord) -> WorkflowRecord:
        """Insert or replace ``record``, refreshing timestamps and fingerprint."""
        previous = self._records.get(record.id)
        updated_at = self._clock()
        if previous is not None:
            updated_at = max(updated_at, previous.updated_at)
            record.created_at = previous.created_at
        else:
            record.created_at = min(record.created_at, updated_at)
        record.updated_at = updated_at
        record.refresh_fingerprint()
        self._records[record.id] = record
        return record

    def delete(self, workflow_ids: str | Iterable[str]) -> List[str]:
        """Remove records; unknown ids are ignored. Returns removed ids."""
        if isinstance(workflow_ids, str):
            workflow_ids = [workflow_ids]
        removed = []
        for workflow_id in workflow_ids:
            if self._records.pop(workflow_id, None) is not None:
                removed.append(workflow_id)
        return removed

    async def persist(self) -> None:
        """Flush the full record map to durable storage."""
        try:
            await self._storage.set({WORKFLOWS_KEY: self._serialize()})
        except Exception as exc:
            logger.error(f"Failed to persist {len(self._records)} workflows: {exc}")
            raise PersistenceFailed(str(exc)) from exc
