"""In-memory catalog for tests and offline hosts."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from ..contracts import RemoteEntry
from ..errors import ContentFetchFailed, ListingFetchFailed
from ..fingerprint import fingerprint
from .base import CatalogClient


class InMemoryCatalog(CatalogClient):
    """Serve a fixed set of workflow documents from memory.

    ``publish`` stores a document and lists it under ``mem://<id>``. Failures
    can be injected per location or for the listing to exercise error paths.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RemoteEntry] = {}
        self._documents: Dict[str, Dict[str, Any]] = {}
        self.listing_error: Optional[Exception] = None
        self.content_errors: Dict[str, Exception] = {}
        self.fetch_count = 0

    def publish(
        self,
        workflow_id: str,
        document: Dict[str, Any],
        *,
        advertise_fingerprint: bool = True,
        fingerprint_override: Optional[str] = None,
        updated_at: Optional[int] = None,
    ) -> RemoteEntry:
        location = f"mem://{workflow_id}"
        graph = document.get("graph", document.get("drawflow")) or {}
        hint = None
        if advertise_fingerprint and (fingerprint_override or isinstance(graph, dict)):
            hint = fingerprint_override or fingerprint(graph)
        entry = RemoteEntry(
            id=workflow_id,
            content_location=location,
            fingerprint=hint,
            updated_at=updated_at,
        )
        self._entries[workflow_id] = entry
        self._documents[location] = copy.deepcopy(document)
        return entry

    def unpublish(self, workflow_id: str) -> None:
        entry = self._entries.pop(workflow_id, None)
        if entry is not None:
            self._documents.pop(entry.content_location, None)

    async def list_entries(self) -> List[RemoteEntry]:
        if self.listing_error is not None:
            raise ListingFetchFailed(str(self.listing_error)) from self.listing_error
        return [entry.model_copy() for entry in self._entries.values()]

    async def fetch_content(self, location: str) -> Dict[str, Any]:
        self.fetch_count += 1
        if location in self.content_errors:
            error = self.content_errors[location]
            raise ContentFetchFailed(None, f"{location}: {error}") from error
        if location not in self._documents:
            raise ContentFetchFailed(None, f"{location}: not found")
        return copy.deepcopy(self._documents[location])
