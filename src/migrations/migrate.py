"""SQLite schema migration runner for the local quiz database."""

from __future__ import annotations

import logging
import re
import shutil
import sqlite3
from datetime import datetime
from pathlib import Path

from utils.file_utils import ensure_directory_exists

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "app.db"
BACKUPS_DIR = PROJECT_ROOT / "backups"
LOCK_PATH = BACKUPS_DIR / ".migrate.lock"
MIGRATIONS_SQL_DIR = Path(__file__).resolve().parent / "sql"

LOGGER = logging.getLogger("pdfquiz.migrate")


class MigrationError(RuntimeError):
    """Raised when a migration fails and rollback was triggered."""


class MigrationInProgressError(RuntimeError):
    """Raised when a migration lock already exists."""


def list_migrations() -> list[tuple[int, Path]]:
    """Return (version, path) for every numbered SQL file, ascending."""
    out: list[tuple[int, Path]] = []
    for path in sorted(MIGRATIONS_SQL_DIR.glob("[0-9][0-9][0-9]_*.sql")):
        match = re.match(r"^(\d{3})_", path.name)
        if match:
            out.append((int(match.group(1)), path))
    out.sort(key=lambda x: x[0])
    return out


def latest_migration_version() -> int:
    migrations = list_migrations()
    return migrations[-1][0] if migrations else 0


def read_schema_version(conn: sqlite3.Connection) -> int:
    # A fresh database has no meta table yet.
    row = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='meta'").fetchone()
    if row is None:
        return 0
    row = conn.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
    if not row:
        return 0
    try:
        return int(row[0])
    except (TypeError, ValueError):
        return 0


def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        """
        INSERT INTO meta(key, value)
        VALUES('schema_version', ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (str(version),),
    )


def _backup_db() -> Path:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    target = BACKUPS_DIR / f"app_{timestamp}.db"
    shutil.copy2(DB_PATH, target)
    return target


def _acquire_lock() -> None:
    try:
        LOCK_PATH.touch(exist_ok=False)
    except FileExistsError as e:
        raise MigrationInProgressError("migration in progress") from e


def _release_lock() -> None:
    try:
        LOCK_PATH.unlink(missing_ok=True)
    except OSError:
        LOGGER.warning("Could not remove migration lock %s", LOCK_PATH)


def migrate_to_latest() -> int:
    """
    Apply pending SQL migrations and return the resulting schema version.

    Creates the database if needed. An existing database is copied to
    BACKUPS_DIR before the first pending migration runs. Calling this again
    once up to date is a no-op.
    """
    ensure_directory_exists(DATA_DIR)
    ensure_directory_exists(BACKUPS_DIR)
    _acquire_lock()
    try:
        migrations = list_migrations()
        if not migrations:
            return 0

        db_existed_before = DB_PATH.exists()
        conn = sqlite3.connect(DB_PATH)
        try:
            current = read_schema_version(conn)
            pending = [(v, p) for v, p in migrations if v > current]
            if not pending:
                return current

            if db_existed_before:
                backup = _backup_db()
                LOGGER.info("Backed up %s to %s", DB_PATH, backup)
            for version, sql_path in pending:
                sql = sql_path.read_text(encoding="utf-8")
                try:
                    conn.execute("BEGIN IMMEDIATE")
                    conn.executescript(sql)
                    set_schema_version(conn, version)
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    raise MigrationError(
                        f"Migration failed at {sql_path.name}. Rolled back. "
                        f"Use backups in: {BACKUPS_DIR}"
                    ) from e
                LOGGER.info("Applied migration %s", sql_path.name)
            return pending[-1][0]
        finally:
            conn.close()
    finally:
        _release_lock()
