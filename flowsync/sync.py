"""Reconciliation engine keeping local workflows in line with the remote catalog."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .constants import DEFAULT_SYNC_INTERVAL
from .contracts import Decision, RemoteEntry, SyncReport, WorkflowRecord, now_ms
from .errors import ContentFetchFailed, ListingFetchFailed, PersistenceFailed
from .catalog import CatalogClient
from .merge import decide, merge_records
from .store import WorkflowStore
from .triggers import (
    TriggerHook,
    TriggerTransition,
    detect_transition,
    dispatch_transitions,
)

logger = logging.getLogger(__name__)


class SyncEngine:
    """Runs reconciliation passes on demand and on a fixed interval.

    Only one pass runs at a time; a pass requested while another is in
    progress is skipped rather than queued. Content for independent entries
    is fetched concurrently, but every change is applied under the store
    lock against the record as it is at that moment, so a local edit made
    while the pass was fetching is not overwritten by a stale decision.
    """

    def __init__(
        self,
        store: WorkflowStore,
        catalog: CatalogClient,
        triggers: TriggerHook,
        *,
        check_update_date: bool = True,
        max_concurrent_fetches: int = 4,
        interval: float = DEFAULT_SYNC_INTERVAL,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._triggers = triggers
        self.check_update_date = check_update_date
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)
        self.interval = interval
        self._pass_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[SyncReport] = None

    @property
    def in_progress(self) -> bool:
        return self._pass_lock.locked()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    async def run_sync_pass(self, reason: str = "manual") -> Optional[SyncReport]:
        """Reconcile local records against the remote listing once.

        Returns:
            The pass report, or ``None`` when another pass was in progress.
        """
        if self._pass_lock.locked():
            logger.info(f"Sync pass already in progress, skipping {reason} pass")
            return None

        async with self._pass_lock:
            report = await self._run_pass(reason)
        self.last_report = report
        return report

    async def _run_pass(self, reason: str) -> SyncReport:
        report = SyncReport(reason=reason)
        try:
            entries = await self._catalog.list_entries()
        except Exception as exc:
            error = exc if isinstance(exc, ListingFetchFailed) else ListingFetchFailed(str(exc))
            logger.error(f"Sync pass ({reason}) aborted, listing unavailable: {error}")
            report.listing_error = str(error)
            report.finished_at = now_ms()
            return report

        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)
        transitions: List[TriggerTransition] = []
        await asyncio.gather(
            *(
                self._process_entry(entry, semaphore, report, transitions)
                for entry in entries
            )
        )

        if report.inserted or report.updated:
            async with self._store.lock:
                try:
                    await self._store.persist()
                except PersistenceFailed as exc:
                    report.persist_error = str(exc)

        if transitions:
            report.trigger_failures = await dispatch_transitions(
                self._triggers, transitions
            )

        report.finished_at = now_ms()
        logger.info(f"Sync pass ({reason}) finished: {report.summary()}")
        return report

    async def _process_entry(
        self,
        entry: RemoteEntry,
        semaphore: asyncio.Semaphore,
        report: SyncReport,
        transitions: List[TriggerTransition],
    ) -> None:
        decision = decide(
            self._store.get(entry.id),
            entry,
            check_update_date=self.check_update_date,
        )
        if decision is Decision.SKIP:
            logger.debug(f"Workflow {entry.id} unchanged according to listing")
            report.skipped.append(entry.id)
            return

        try:
            async with semaphore:
                report.fetches += 1
                document = await self._catalog.fetch_content(entry.content_location)
            remote = WorkflowRecord.from_storage({**document, "id": entry.id})
        except Exception as exc:
            error = ContentFetchFailed(entry.id, str(exc))
            logger.warning(f"Skipping workflow in this pass: {error}")
            report.failed[entry.id] = str(error)
            return

        async with self._store.lock:
            self._apply(entry, remote, report, transitions)

    def _apply(
        self,
        entry: RemoteEntry,
        remote: WorkflowRecord,
        report: SyncReport,
        transitions: List[TriggerTransition],
    ) -> None:
        current = self._store.get(entry.id)
        remote_updated_at = (
            remote.updated_at if "updated_at" in remote.model_fields_set else None
        )
        decision = decide(
            current,
            entry,
            remote_fingerprint=remote.fingerprint,
            remote_updated_at=remote_updated_at,
            check_update_date=self.check_update_date,
        )

        if decision is Decision.SKIP:
            logger.debug(f"Workflow {entry.id} not updated after content check")
            report.skipped.append(entry.id)
            return

        if decision is Decision.INSERT:
            record = remote
        else:
            record = merge_records(current, remote, decision)
        record.synced_fingerprint = remote.fingerprint
        record = self._store.upsert(record)

        if decision is Decision.INSERT:
            report.inserted.append(record.id)
            logger.info(f"Workflow {record.id} added from remote catalog")
            return

        report.updated.append(record.id)
        logger.info(f"Workflow {record.id} updated from remote catalog ({decision.value})")
        transition = detect_transition(current, record)
        if transition is not None:
            transitions.append(transition)

    # ------------------------------------------------------------------
    def start(self) -> asyncio.Task:
        """Start the periodic pass loop on the running event loop."""
        if not self.running:
            self._task = asyncio.create_task(self._run_periodically())
        return self._task

    async def stop(self) -> None:
        """Cancel the periodic loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_sync_pass(reason="timer")
            except Exception:
                logger.exception("Unexpected error in periodic sync pass")
