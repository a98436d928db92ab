"""Key-value persistence port and its SQLite / in-memory adapters."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Protocol

import migrations.migrate as migrate_mod
from utils.file_utils import ensure_parent_exists


class KeyValueStore(Protocol):
    """Durable byte storage addressed by string keys."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


def _now_iso() -> str:
    return datetime.utcnow().replace(microsecond=0).isoformat()


class SQLiteKeyValueStore:
    """Stores values in the ``kv_store`` table created by migration 001."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path = Path(db_path) if db_path is not None else None

    @property
    def db_path(self) -> Path:
        # Resolved per call so tests can monkeypatch migrations.migrate.DB_PATH.
        if self._db_path is not None:
            return self._db_path
        return Path(migrate_mod.DB_PATH)

    def _connect(self) -> sqlite3.Connection:
        ensure_parent_exists(self.db_path)
        return sqlite3.connect(self.db_path)

    def get(self, key: str) -> bytes | None:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key=?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def set(self, key: str, value: bytes) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO kv_store(key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                    """,
                    (key, sqlite3.Binary(value), _now_iso()),
                )
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM kv_store WHERE key=?", (key,))
        finally:
            conn.close()


class InMemoryKeyValueStore:
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.writes += 1
        self.data[key] = bytes(value)
