"""Persistent store for the material collection, with load-time migration."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Callable

from config import STORAGE_KEY
from models import Material
from services.kv_store import KeyValueStore
from utils.ids import new_id

LOGGER = logging.getLogger("pdfquiz.store")


class CorruptStateError(ValueError):
    """Raised when the persisted blob cannot be read back into materials."""


def _decode(blob: bytes) -> list[dict[str, Any]]:
    try:
        data = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptStateError(f"Stored state is not valid JSON: {e!s}") from e
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise CorruptStateError("Stored state must be a list of material objects.")
    return data


def migrate_question_ids(
    records: list[dict[str, Any]],
    id_factory: Callable[[], str] = new_id,
) -> tuple[list[dict[str, Any]], bool]:
    """
    Give every quiz question without an ``id`` a fresh one.

    Only null or missing question ids are touched; every other field is passed
    through as-is. Returns the (possibly new) record list and whether anything
    changed. Running it on its own output changes nothing.
    """
    changed = False
    out: list[dict[str, Any]] = []
    for record in records:
        quiz = record.get("quiz")
        if not isinstance(quiz, list):
            out.append(record)
            continue
        quiz_changed = False
        new_quiz: list[Any] = []
        for q in quiz:
            if isinstance(q, dict) and q.get("id") is None:
                quiz_changed = True
                new_quiz.append({**q, "id": id_factory()})
            else:
                new_quiz.append(q)
        if quiz_changed:
            changed = True
            out.append({**record, "quiz": new_quiz})
        else:
            out.append(record)
    return out, changed


class MaterialStore:
    """Reads and writes the whole material collection under one key."""

    def __init__(
        self,
        backend: KeyValueStore,
        key: str = STORAGE_KEY,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._backend = backend
        self._key = key
        self._id_factory = id_factory

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> list[Material]:
        """
        Load materials, migrating legacy records in place.

        Returns [] when nothing was ever saved. If any question needed an id,
        the migrated collection is written back before returning.

        Raises:
            CorruptStateError: If the blob cannot be read or parsed into materials.
        """
        try:
            blob = self._backend.get(self._key)
        except (sqlite3.Error, OSError) as e:
            raise CorruptStateError(f"Stored state could not be read: {e!s}") from e
        if blob is None:
            return []
        records = _decode(blob)
        records, changed = migrate_question_ids(records, self._id_factory)
        try:
            materials = [Material.from_dict(r) for r in records]
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptStateError(f"Stored material record is malformed: {e!s}") from e
        if changed:
            LOGGER.info("Migrating stored materials to include unique question ids; writing back.")
            self._write(json.dumps(records, ensure_ascii=False).encode("utf-8"))
        return materials

    def load_or_empty(self) -> list[Material]:
        """Like load(), but an unreadable or corrupt blob degrades to an empty collection."""
        try:
            return self.load()
        except CorruptStateError as e:
            LOGGER.warning("Discarding unreadable state under key %r: %s", self._key, e)
            return []

    def save(self, materials: list[Material]) -> None:
        """Overwrite the stored collection. Write failures are logged, not raised."""
        payload = [m.to_dict() for m in materials]
        self._write(json.dumps(payload, ensure_ascii=False).encode("utf-8"))

    def _write(self, blob: bytes) -> None:
        try:
            self._backend.set(self._key, blob)
        except (sqlite3.Error, OSError):
            LOGGER.exception("Error writing state under key %r", self._key)
