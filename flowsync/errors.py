"""Exceptions raised by the flowsync engine."""

from __future__ import annotations

from typing import Optional


class FlowSyncError(Exception):
    """Base class for all flowsync errors."""


class ListingFetchFailed(FlowSyncError):
    """The remote catalog listing could not be retrieved."""


class ContentFetchFailed(FlowSyncError):
    """Content for a single remote workflow could not be retrieved or parsed."""

    def __init__(self, workflow_id: Optional[str], message: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"{workflow_id}: {message}" if workflow_id else message)


class PersistenceFailed(FlowSyncError):
    """Flushing the record map to durable storage failed."""


class TriggerHookFailed(FlowSyncError):
    """Registering or tearing down a workflow trigger failed."""

    def __init__(self, workflow_id: str, message: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"{workflow_id}: {message}")


class BackupDeleteFailed(FlowSyncError):
    """The remote backup copy of a workflow could not be deleted."""

    def __init__(self, workflow_id: str, message: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"{workflow_id}: {message}")
