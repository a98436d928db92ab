"""Minimal stability self-check for migrations and the material store."""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
import uuid
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from migrations.migrate import DB_PATH, latest_migration_version, migrate_to_latest
from models import AnswerStatus, QuizAttempt
from services.kv_store import SQLiteKeyValueStore
from services.material_repository import MaterialRepository
from services.material_store import MaterialStore
from utils.metrics import get_metrics_summary, get_recent_metrics, log_metric

LOGGER = logging.getLogger("pdfquiz.self_check")


def check_migrations_idempotent() -> None:
    first = migrate_to_latest()
    second = migrate_to_latest()
    latest = latest_migration_version()
    assert second == first, f"migrate_to_latest not idempotent: {first} vs {second}"
    assert second == latest, f"schema version not latest: {second} vs {latest}"

    conn = sqlite3.connect(DB_PATH)
    try:
        tables = {str(r[0]) for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        missing = {"meta", "kv_store", "operation_metrics"} - tables
        assert not missing, f"missing tables: {sorted(missing)}"
    finally:
        conn.close()


def check_legacy_blob_migration() -> None:
    kv = SQLiteKeyValueStore()
    key = f"selfcheck_{uuid.uuid4().hex[:8]}"
    legacy = [
        {
            "id": "pdf_selfcheck",
            "fileName": "selfcheck.pdf",
            "displayName": "selfcheck",
            "summary": "summary",
            "quiz": [{"question": "Q?", "answer": "A", "source_questions": "Q1"}],
            "quizAttempts": [],
            "createdAt": 0,
        }
    ]
    kv.set(key, json.dumps(legacy).encode("utf-8"))
    try:
        store = MaterialStore(kv, key=key)
        first = store.load()
        assert first[0].quiz[0].id, "question id not assigned"
        blob = kv.get(key)
        second = store.load()
        assert second == first, "second load reassigned ids"
        assert kv.get(key) == blob, "second load rewrote the blob"
    finally:
        kv.delete(key)


def check_repository_crud() -> None:
    kv = SQLiteKeyValueStore()
    key = f"selfcheck_{uuid.uuid4().hex[:8]}"
    try:
        repo = MaterialRepository(MaterialStore(kv, key=key))
        material = repo.create_material("selfcheck.pdf", "selfcheck", "summary", [])
        added = repo.add_question(material.id, "Q?", "A", "self check")
        repo.append_attempt(material.id, QuizAttempt(date=1, answers=(AnswerStatus.CORRECT,)))

        reopened = MaterialRepository(MaterialStore(kv, key=key))
        stored = reopened.get_material(material.id)
        assert stored is not None, "material not persisted"
        assert stored.quiz == (added,), "question not persisted"
        assert len(stored.quiz_attempts) == 1, "attempt not persisted"

        reopened.delete_material(material.id)
        assert MaterialRepository(MaterialStore(kv, key=key)).list_materials() == [], "delete not persisted"
    finally:
        kv.delete(key)


def check_metrics_read_back() -> None:
    operation = f"selfcheck_{uuid.uuid4().hex[:8]}"
    log_metric(operation, 0.001, material_id="selfcheck")
    recent = get_recent_metrics(limit=20)
    assert any(r["operation"] == operation for r in recent), "metric not recorded"

    conn = sqlite3.connect(DB_PATH)
    try:
        with conn:
            conn.execute("DELETE FROM operation_metrics WHERE operation = ?", (operation,))
    finally:
        conn.close()

    for name, stats in get_metrics_summary().items():
        LOGGER.info("metrics %s: %d runs, avg %.2fs, max %.2fs", name, stats["total"], stats["avg_s"], stats["max_s"])


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    check_migrations_idempotent()
    check_legacy_blob_migration()
    check_repository_crud()
    check_metrics_read_back()
    LOGGER.info("self_check: OK")


if __name__ == "__main__":
    main()
