"""Key-value persistence for url-risk.

Values are JSON-serializable and addressed by string key. Multi-step
read-modify-write sequences must hold `store.lock(key)`; the lock is an
asyncio.Lock so it serializes coroutines on the single event loop.

`SqliteStore` keeps one row per key:
- key -> JSON payload + update timestamp
- whole-value reads and writes only
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import sqlite3
import time
from typing import Any, Optional

from .errors import QuotaFailure, StoreError


def default_store_path() -> str:
    base = os.getenv("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")
    return os.path.join(base, "url-risk", "store.sqlite")


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class KeyValueStore:
    """Base interface for stores."""

    def __init__(self, *, max_value_bytes: Optional[int] = None) -> None:
        self.max_value_bytes = max_value_bytes
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _encode(self, key: str, value: Any) -> str:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value for {key!r} is not JSON-serializable: {e}") from e
        if self.max_value_bytes is not None and len(encoded.encode("utf-8")) > self.max_value_bytes:
            raise QuotaFailure(f"Value for {key!r} exceeds {self.max_value_bytes} bytes")
        return encoded

    async def get(self, key: str) -> Any:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store. Values are deep-copied so callers never share state."""

    def __init__(self, *, max_value_bytes: Optional[int] = None) -> None:
        super().__init__(max_value_bytes=max_value_bytes)
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        await asyncio.sleep(0)
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._encode(key, value)
        await asyncio.sleep(0)
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())


class SqliteStore(KeyValueStore):
    def __init__(self, path: str, *, max_value_bytes: Optional[int] = 5 * 1024 * 1024) -> None:
        super().__init__(max_value_bytes=max_value_bytes)
        self.path = path
        _ensure_parent_dir(path)
        try:
            with self._connect() as con:
                con.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at REAL NOT NULL
                    )
                    """
                )
        except sqlite3.Error as e:
            raise StoreError(f"Could not open store at {path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def _get_sync(self, key: str) -> Any:
        with self._connect() as con:
            row = con.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        try:
            return json.loads(row[0])
        except ValueError:
            return None

    def _set_sync(self, key: str, value_json: str) -> None:
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
                """,
                (key, value_json, time.time()),
            )
            con.commit()

    def _delete_sync(self, key: str) -> None:
        with self._connect() as con:
            con.execute("DELETE FROM kv WHERE key = ?", (key,))
            con.commit()

    async def get(self, key: str) -> Any:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def set(self, key: str, value: Any) -> None:
        value_json = self._encode(key, value)
        try:
            await asyncio.to_thread(self._set_sync, key, value_json)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, key)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
