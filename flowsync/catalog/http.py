"""HTTP catalog client using httpx."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx
from pydantic import ValidationError

from ..contracts import RemoteEntry
from ..errors import ContentFetchFailed, ListingFetchFailed
from ..utils.retry import with_retries
from .base import CatalogClient

logger = logging.getLogger(__name__)


class HttpCatalog(CatalogClient):
    """Fetch the listing and workflow documents over HTTP.

    The listing endpoint returns a JSON array of entries, or an object with a
    ``workflows`` array. Relative content locations are resolved against the
    listing URL.
    """

    def __init__(
        self,
        listing_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        client: Optional[httpx.AsyncClient] = None,
        backoff_base: float = 1.5,
    ) -> None:
        self.listing_url = listing_url
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _get_json(self, url: str) -> Any:
        async def attempt() -> Any:
            response = await self._client.get(url)
            response.raise_for_status()
            return response.json()

        return await with_retries(
            attempt,
            retries=self.retries,
            retry_on=(httpx.TransportError, httpx.HTTPStatusError),
            base=self.backoff_base,
        )

    async def list_entries(self) -> List[RemoteEntry]:
        try:
            payload = await self._get_json(self.listing_url)
        except (httpx.HTTPError, ValueError) as exc:
            raise ListingFetchFailed(f"{self.listing_url}: {exc}") from exc

        if isinstance(payload, dict):
            payload = payload.get("workflows")
        if not isinstance(payload, list):
            raise ListingFetchFailed(
                f"{self.listing_url}: expected a list of workflows"
            )

        entries: List[RemoteEntry] = []
        for item in payload:
            try:
                entries.append(RemoteEntry.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Ignoring malformed listing entry {item!r}: {exc}")
        return entries

    async def fetch_content(self, location: str) -> Dict[str, Any]:
        url = urljoin(self.listing_url, location)
        try:
            document = await self._get_json(url)
        except (httpx.HTTPError, ValueError) as exc:
            raise ContentFetchFailed(None, f"{url}: {exc}") from exc
        if not isinstance(document, dict):
            raise ContentFetchFailed(None, f"{url}: expected a workflow object")
        return document

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
