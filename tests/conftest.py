"""Shared pytest fixtures for the PDF Study Quiz test suite."""

from __future__ import annotations

import itertools
import sqlite3
import sys
from pathlib import Path

import pytest

# Ensure src/ is on the path so all service imports resolve.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

MIGRATIONS_SQL_DIR = SRC_DIR / "migrations" / "sql"


def _apply_migrations(db_path: str) -> None:
    """Run all SQL migration files in order against *db_path*."""
    conn = sqlite3.connect(db_path)
    try:
        sql_files = sorted(MIGRATIONS_SQL_DIR.glob("[0-9][0-9][0-9]_*.sql"))
        for sql_file in sql_files:
            conn.executescript(sql_file.read_text(encoding="utf-8"))
        conn.execute(
            "INSERT INTO meta(key, value) VALUES('schema_version', ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (str(len(sql_files)),),
        )
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def tmp_db(tmp_path, monkeypatch):
    """Temporary SQLite DB with all migrations applied.

    Monkeypatches DB_PATH (and the backup/lock locations) so nothing touches
    the real data directory.
    """
    db_file = tmp_path / "test_app.db"
    _apply_migrations(str(db_file))

    import migrations.migrate as migrate_mod

    monkeypatch.setattr(migrate_mod, "DATA_DIR", tmp_path)
    monkeypatch.setattr(migrate_mod, "DB_PATH", db_file)
    monkeypatch.setattr(migrate_mod, "BACKUPS_DIR", tmp_path / "backups")
    monkeypatch.setattr(migrate_mod, "LOCK_PATH", tmp_path / "backups" / ".migrate.lock")
    return db_file


@pytest.fixture
def seq_ids():
    """Deterministic id factory: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def memory_kv():
    from services.kv_store import InMemoryKeyValueStore

    return InMemoryKeyValueStore()


@pytest.fixture
def store(memory_kv, seq_ids):
    from services.material_store import MaterialStore

    return MaterialStore(memory_kv, id_factory=seq_ids)


@pytest.fixture
def repo(store, seq_ids):
    from services.material_repository import MaterialRepository

    clock = itertools.count(1_700_000_000_000, 1000)
    return MaterialRepository(store, id_factory=seq_ids, clock=lambda: next(clock))
