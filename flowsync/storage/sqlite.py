"""SQLite implementation of the key-value storage."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from .base import KeyValueStorage


class SQLiteStorage(KeyValueStorage):
    """Persist JSON values in a single SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _read(self, keys: list[str]) -> Dict[str, Any]:
        if not keys:
            return {}
        placeholders = ", ".join("?" for _ in keys)
        cur = self._conn.cursor()
        cur.execute(
            f"SELECT key, value FROM kv_store WHERE key IN ({placeholders})", keys
        )
        return {row["key"]: json.loads(row["value"]) for row in cur.fetchall()}

    def _write(self, items: Dict[str, str]) -> None:
        cur = self._conn.cursor()
        cur.executemany(
            "INSERT INTO kv_store (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            list(items.items()),
        )
        self._conn.commit()

    def _delete(self, keys: list[str]) -> None:
        cur = self._conn.cursor()
        cur.executemany("DELETE FROM kv_store WHERE key = ?", [(k,) for k in keys])
        self._conn.commit()

    # ------------------------------------------------------------------
    # Storage API
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._read, list(keys))

    async def set(self, items: Mapping[str, Any]) -> None:
        encoded = {key: json.dumps(value) for key, value in items.items()}
        await asyncio.to_thread(self._write, encoded)

    async def remove(self, keys: Iterable[str]) -> None:
        await asyncio.to_thread(self._delete, list(keys))

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)
