"""Local mutation API: update, import and delete workflows."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .backup import BackupClient
from .constants import BACKUP_IDS_KEY, HOSTED_KEY, PINNED_KEY, ephemeral_keys
from .contracts import Decision, WorkflowRecord
from .errors import BackupDeleteFailed
from .merge import decide, deep_merge, merge_records, normalize_patch
from .store import WorkflowStore, default_workflow
from .triggers import (
    TriggerHook,
    TriggerTransition,
    detect_transition,
    dispatch_transitions,
)

logger = logging.getLogger(__name__)

Selector = Union[str, Callable[[WorkflowRecord], bool]]


class WorkflowService:
    """Mutations issued by the local editor or an import.

    All record changes go through the store lock and are persisted once per
    call. Trigger side effects follow the in-memory change, also when
    persisting it fails.
    """

    def __init__(
        self,
        store: WorkflowStore,
        triggers: TriggerHook,
        backup: Optional[BackupClient] = None,
    ) -> None:
        self._store = store
        self._storage = store.storage
        self._triggers = triggers
        self._backup = backup

    async def update(
        self,
        selector: Selector,
        patch: Mapping[str, Any],
        deep: bool = False,
    ) -> Dict[str, WorkflowRecord]:
        """Apply ``patch`` to the record(s) matched by ``selector``.

        Args:
            selector: A workflow id, or a predicate evaluated on every record.
            patch: Fields to write, in python or storage (camelCase) naming.
            deep: Merge nested mappings instead of replacing top-level fields.

        Returns:
            Updated records by id; empty when nothing matched.
        """
        data = normalize_patch(patch)
        touches_enabled = "isDisabled" in data
        updated: Dict[str, WorkflowRecord] = {}
        transitions: List[TriggerTransition] = []

        try:
            async with self._store.lock:
                if callable(selector):
                    targets = [r for r in self._store.all() if selector(r)]
                else:
                    current = self._store.get(selector)
                    targets = [current] if current is not None else []

                for current in targets:
                    base = current.to_storage()
                    merged = deep_merge(base, data) if deep else {**base, **data}
                    merged["id"] = current.id
                    record = self._store.upsert(WorkflowRecord.from_storage(merged))
                    updated[record.id] = record
                    if touches_enabled:
                        transition = detect_transition(current, record)
                        if transition is not None:
                            transitions.append(transition)

                if updated:
                    await self._store.persist()
        finally:
            # Memory already holds the change even if persist raised.
            if transitions:
                await dispatch_transitions(self._triggers, transitions)
        return updated

    async def insert_or_update(
        self,
        items: Iterable[Mapping[str, Any]],
        check_update_date: bool = False,
        duplicate_id: bool = False,
    ) -> Dict[str, WorkflowRecord]:
        """Import workflows, creating unknown ids and updating known ones.

        Known ids pass the same recency and content gate as a sync pass, so a
        re-import of unchanged content is a no-op.
        """
        results: Dict[str, WorkflowRecord] = {}
        transitions: List[TriggerTransition] = []

        try:
            async with self._store.lock:
                for item in items:
                    data = normalize_patch(item)
                    workflow_id = data.get("id")
                    current = self._store.get(workflow_id) if workflow_id else None

                    if current is None:
                        record = default_workflow(
                            data, duplicate_id=duplicate_id, clock=self._store.clock
                        )
                        record = self._store.upsert(record)
                        results[record.id] = record
                        logger.info(f"Workflow {record.id} added")
                        continue

                    incoming = WorkflowRecord.from_storage({**data, "id": current.id})
                    remote_updated_at = (
                        incoming.updated_at
                        if "updated_at" in incoming.model_fields_set
                        else None
                    )
                    decision = decide(
                        current,
                        remote_fingerprint=incoming.fingerprint,
                        remote_updated_at=remote_updated_at,
                        check_update_date=check_update_date,
                    )
                    if decision is Decision.SKIP:
                        logger.debug(f"Workflow {current.id} not updated (unchanged)")
                        continue

                    merged = merge_records(current, incoming, decision)
                    record = self._store.upsert(merged)
                    results[record.id] = record
                    logger.info(f"Workflow {record.id} updated ({decision.value})")
                    transition = detect_transition(current, record)
                    if transition is not None:
                        transitions.append(transition)

                if results:
                    await self._store.persist()
        finally:
            if transitions:
                await dispatch_transitions(self._triggers, transitions)
        return results

    async def duplicate(self, workflow_id: str) -> Optional[WorkflowRecord]:
        """Create a copy of ``workflow_id`` under a fresh id."""
        current = self._store.get(workflow_id)
        if current is None:
            return None
        data = current.to_storage()
        for key in ("id", "createdAt", "updatedAt", "fingerprint", "syncedFingerprint"):
            data.pop(key, None)
        data["name"] = f"{current.name} - copy"
        inserted = await self.insert_or_update([data], duplicate_id=True)
        return next(iter(inserted.values()))

    async def delete(self, workflow_ids: Union[str, Iterable[str]]) -> List[str]:
        """Delete workflows and everything keyed by their ids.

        Ids are handled in order. A hosted or backed-up workflow has its remote
        copy removed first; when that fails, the ids before it are still
        deleted locally and the error then propagates, leaving the failing id
        and the ones after it untouched. Local deletion removes the records,
        their triggers, ephemeral state/draft keys and their entries in the
        pinned, backup and hosted lists. Unknown ids are ignored.
        """
        if isinstance(workflow_ids, str):
            workflow_ids = [workflow_ids]
        known = [wid for wid in workflow_ids if wid in self._store]
        if not known:
            return []

        bookkeeping = await self._storage.get([BACKUP_IDS_KEY, HOSTED_KEY, PINNED_KEY])
        backup_ids: List[str] = list(bookkeeping.get(BACKUP_IDS_KEY) or [])
        hosted: Dict[str, Any] = dict(bookkeeping.get(HOSTED_KEY) or {})
        pinned: List[str] = list(bookkeeping.get(PINNED_KEY) or [])

        deletable: List[str] = []
        failure: Optional[BackupDeleteFailed] = None
        for workflow_id in known:
            if workflow_id in hosted or workflow_id in backup_ids:
                try:
                    await self._delete_backup(workflow_id)
                except BackupDeleteFailed as exc:
                    failure = exc
                    break
            deletable.append(workflow_id)

        removed: List[str] = []
        if deletable:
            try:
                async with self._store.lock:
                    removed = self._store.delete(deletable)
                    await self._store.persist()
            finally:
                await self._cleanup(removed, backup_ids, hosted, pinned)

        if failure is not None:
            logger.warning(f"Delete stopped at workflow {failure.workflow_id}: {failure}")
            raise failure
        return removed

    async def _delete_backup(self, workflow_id: str) -> None:
        if self._backup is None:
            raise BackupDeleteFailed(workflow_id, "no backup API configured")
        await self._backup.delete_backup(workflow_id)

    async def _cleanup(
        self,
        removed: List[str],
        backup_ids: List[str],
        hosted: Dict[str, Any],
        pinned: List[str],
    ) -> None:
        """Tear down triggers and keys of records already gone from the store."""
        if not removed:
            return

        await dispatch_transitions(
            self._triggers,
            [TriggerTransition(workflow_id=wid, enabled=False) for wid in removed],
        )
        await self._storage.remove(
            [key for workflow_id in removed for key in ephemeral_keys(workflow_id)]
        )

        updates: Dict[str, Any] = {}
        if any(wid in backup_ids for wid in removed):
            updates[BACKUP_IDS_KEY] = [wid for wid in backup_ids if wid not in removed]
        if any(wid in hosted for wid in removed):
            updates[HOSTED_KEY] = {k: v for k, v in hosted.items() if k not in removed}
        if any(wid in pinned for wid in removed):
            updates[PINNED_KEY] = [wid for wid in pinned if wid not in removed]
        if updates:
            await self._storage.set(updates)

        logger.info(f"Deleted workflows: {', '.join(removed)}")
