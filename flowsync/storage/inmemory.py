"""In-memory key-value storage for tests."""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, Mapping

from .base import KeyValueStorage


class InMemoryStorage(KeyValueStorage):
    """Store values in a local dict.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store, matching the behaviour of a serializing
    backend. Data is not persisted across process restarts.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
