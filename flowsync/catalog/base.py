"""Remote catalog client interface."""

from __future__ import annotations

import abc
from typing import Any, Dict, List

from ..contracts import RemoteEntry


class CatalogClient(metaclass=abc.ABCMeta):
    """Abstract client for the remote workflow catalog."""

    @abc.abstractmethod
    async def list_entries(self) -> List[RemoteEntry]:
        """Return the complete listing of remote workflows.

        Raises:
            ListingFetchFailed: The listing could not be retrieved or parsed.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_content(self, location: str) -> Dict[str, Any]:
        """Return the full workflow document stored at ``location``.

        Raises:
            ContentFetchFailed: The document could not be retrieved or parsed.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release client resources (no-op by default)."""
        pass
