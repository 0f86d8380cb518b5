"""Durable key-value storage interface."""

from __future__ import annotations

import abc
from typing import Any, Dict, Iterable, Mapping


class KeyValueStorage(metaclass=abc.ABCMeta):
    """Abstract async key-value store holding JSON-compatible values."""

    @abc.abstractmethod
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for ``keys``; missing keys are omitted."""
        raise NotImplementedError

    @abc.abstractmethod
    async def set(self, items: Mapping[str, Any]) -> None:
        """Write every key/value pair of ``items``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Delete ``keys``. Unknown keys are ignored."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""
        pass
