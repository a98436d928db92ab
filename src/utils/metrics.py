"""Timing metrics for extraction and generation, stored in SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any

import migrations.migrate as migrate_mod

LOGGER = logging.getLogger("pdfquiz.metrics")


def _now_iso() -> str:
    return datetime.utcnow().replace(microsecond=0).isoformat()


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(migrate_mod.DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def log_metric(operation: str, elapsed_s: float, material_id: str = "", **meta: Any) -> None:
    """Persist one timing row.

    Never raises; a failed metric write is only logged at debug level.

    Args:
        operation: e.g. "extract", "generate", "generate_question".
        elapsed_s: Wall-clock seconds the operation took.
        material_id: Material the operation produced or touched, if any.
        **meta: Extra key-value pairs stored as JSON (e.g. pages=12).
    """
    try:
        meta_json = json.dumps(meta, ensure_ascii=False, default=str)
        with _connect() as conn:
            conn.execute(
                """
                INSERT INTO operation_metrics (operation, material_id, elapsed_s, meta_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (operation, material_id or "", round(elapsed_s, 3), meta_json, _now_iso()),
            )
    except (sqlite3.Error, OSError, TypeError, ValueError) as e:
        LOGGER.debug("Dropping metric %r: %s", operation, e)


def get_recent_metrics(limit: int = 50) -> list[dict[str, Any]]:
    """Return the most recent *limit* rows, newest first ([] on any DB error)."""
    try:
        with _connect() as conn:
            rows = conn.execute(
                """
                SELECT id, operation, material_id, elapsed_s, meta_json, created_at
                FROM operation_metrics
                ORDER BY id DESC
                LIMIT ?
                """,
                (max(1, limit),),
            ).fetchall()
    except sqlite3.Error:
        return []
    out: list[dict[str, Any]] = []
    for row in rows:
        item = dict(row)
        try:
            item["meta"] = json.loads(item.pop("meta_json") or "{}")
        except json.JSONDecodeError:
            item["meta"] = {}
        out.append(item)
    return out


def get_metrics_summary() -> dict[str, Any]:
    """Per-operation count and timing aggregates ({} on any DB error)."""
    try:
        with _connect() as conn:
            rows = conn.execute(
                """
                SELECT
                    operation,
                    COUNT(*)          AS total,
                    AVG(elapsed_s)    AS avg_s,
                    MIN(elapsed_s)    AS min_s,
                    MAX(elapsed_s)    AS max_s,
                    MAX(created_at)   AS last_at
                FROM operation_metrics
                GROUP BY operation
                ORDER BY total DESC
                """
            ).fetchall()
    except sqlite3.Error:
        return {}
    return {
        row["operation"]: {
            "total": row["total"],
            "avg_s": round(row["avg_s"], 2),
            "min_s": round(row["min_s"], 2),
            "max_s": round(row["max_s"], 2),
            "last_at": row["last_at"],
        }
        for row in rows
    }
