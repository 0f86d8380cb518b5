"""Catalog client factory."""

from __future__ import annotations

from typing import Optional

from ..config import FlowSyncConfig, load_config
from .base import CatalogClient
from .http import HttpCatalog
from .inmemory import InMemoryCatalog


def get_catalog(
    listing_url: Optional[str] = None, config: Optional[FlowSyncConfig] = None
) -> CatalogClient:
    """Return an HTTP catalog when a listing URL is configured.

    Without one, an empty in-memory catalog is returned so a host can run
    fully offline.
    """

    config = config or load_config()
    listing_url = listing_url or config.catalog.listing_url
    if not listing_url:
        return InMemoryCatalog()
    return HttpCatalog(
        listing_url,
        timeout=config.catalog.timeout,
        retries=config.catalog.retries,
    )


__all__ = ["CatalogClient", "HttpCatalog", "InMemoryCatalog", "get_catalog"]
