"""Tests for MaterialStore: load, question-id migration and save."""

from __future__ import annotations

import json
import logging
import sqlite3

import pytest

from models import AnswerStatus, Material, QuizAttempt, QuizQuestion
from services.kv_store import InMemoryKeyValueStore
from services.material_store import CorruptStateError, MaterialStore, migrate_question_ids

KEY = "pdfQuizRecords"


def _legacy_blob() -> bytes:
    """A record saved before questions carried ids."""
    records = [
        {
            "id": "pdf_1700000000000",
            "fileName": "direito.pdf",
            "displayName": "direito",
            "summary": "Resumo",
            "quiz": [
                {"question": "Q1?", "answer": "A1", "source_questions": "Questão 3"},
                {"id": None, "question": "Q2?", "answer": "A2", "source_questions": "Questão 7"},
                {"id": "keep-me", "question": "Q3?", "answer": "A3", "source_questions": ""},
            ],
            "quizAttempts": [{"date": 1700000001000, "answers": [1, 2, 0]}],
            "createdAt": 1700000000000,
        }
    ]
    return json.dumps(records).encode("utf-8")


class _FailingKV(InMemoryKeyValueStore):
    def set(self, key: str, value: bytes) -> None:
        raise sqlite3.OperationalError("disk I/O error")


class _LockedKV(InMemoryKeyValueStore):
    def get(self, key: str) -> bytes | None:
        raise sqlite3.OperationalError("database is locked")


class TestLoad:
    def test_absent_key_returns_empty(self, store, memory_kv):
        assert store.load() == []
        assert memory_kv.writes == 0

    def test_invalid_json_raises_corrupt(self, memory_kv):
        memory_kv.data[KEY] = b"{not json"
        with pytest.raises(CorruptStateError):
            MaterialStore(memory_kv).load()

    def test_non_list_raises_corrupt(self, memory_kv):
        memory_kv.data[KEY] = b'{"id": "x"}'
        with pytest.raises(CorruptStateError):
            MaterialStore(memory_kv).load()

    def test_record_without_id_raises_corrupt(self, memory_kv):
        memory_kv.data[KEY] = b'[{"fileName": "a.pdf", "quiz": []}]'
        with pytest.raises(CorruptStateError):
            MaterialStore(memory_kv).load()

    def test_null_material_ids_raise_corrupt(self, memory_kv):
        memory_kv.data[KEY] = json.dumps(
            [{"id": None, "fileName": "a.pdf", "quiz": []}, {"id": None, "fileName": "b.pdf", "quiz": []}]
        ).encode()
        with pytest.raises(CorruptStateError):
            MaterialStore(memory_kv).load()

    def test_non_scalar_question_id_raises_corrupt(self, memory_kv):
        memory_kv.data[KEY] = json.dumps(
            [{"id": "m", "quiz": [{"id": {"x": 1}, "question": "Q?", "answer": "A"}]}]
        ).encode()
        with pytest.raises(CorruptStateError):
            MaterialStore(memory_kv).load()

    def test_integer_id_is_read_as_string(self, memory_kv):
        memory_kv.data[KEY] = b'[{"id": 7, "quiz": []}]'
        (material,) = MaterialStore(memory_kv).load()
        assert material.id == "7"

    def test_read_failure_raises_corrupt(self):
        with pytest.raises(CorruptStateError, match="database is locked"):
            MaterialStore(_LockedKV()).load()

    def test_load_or_empty_survives_read_failure(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pdfquiz.store"):
            assert MaterialStore(_LockedKV()).load_or_empty() == []
        assert "database is locked" in caplog.text

    def test_bad_answer_status_raises_corrupt(self, memory_kv):
        memory_kv.data[KEY] = json.dumps(
            [{"id": "m", "quiz": [], "quizAttempts": [{"date": 1, "answers": [9]}]}]
        ).encode()
        with pytest.raises(CorruptStateError):
            MaterialStore(memory_kv).load()

    def test_load_or_empty_degrades_and_logs(self, memory_kv, caplog):
        memory_kv.data[KEY] = b"garbage"
        with caplog.at_level(logging.WARNING, logger="pdfquiz.store"):
            assert MaterialStore(memory_kv).load_or_empty() == []
        assert "unreadable" in caplog.text

    def test_loads_fields(self, memory_kv, seq_ids):
        memory_kv.data[KEY] = _legacy_blob()
        (material,) = MaterialStore(memory_kv, id_factory=seq_ids).load()
        assert material.id == "pdf_1700000000000"
        assert material.file_name == "direito.pdf"
        assert material.display_name == "direito"
        assert material.created_at == 1700000000000
        assert material.quiz_attempts == (
            QuizAttempt(
                date=1700000001000,
                answers=(AnswerStatus.CORRECT, AnswerStatus.INCORRECT, AnswerStatus.UNANSWERED),
            ),
        )


class TestMigration:
    def test_missing_and_null_ids_assigned(self, memory_kv, seq_ids):
        memory_kv.data[KEY] = _legacy_blob()
        (material,) = MaterialStore(memory_kv, id_factory=seq_ids).load()
        assert [q.id for q in material.quiz] == ["id-1", "id-2", "keep-me"]

    def test_migration_writes_back(self, memory_kv, seq_ids):
        memory_kv.data[KEY] = _legacy_blob()
        MaterialStore(memory_kv, id_factory=seq_ids).load()
        assert memory_kv.writes == 1
        stored = json.loads(memory_kv.data[KEY])
        assert all(q["id"] for q in stored[0]["quiz"])

    def test_other_fields_pass_through(self, memory_kv, seq_ids):
        original = json.loads(_legacy_blob())
        original[0]["extra"] = {"kept": True}
        memory_kv.data[KEY] = json.dumps(original).encode()
        MaterialStore(memory_kv, id_factory=seq_ids).load()
        stored = json.loads(memory_kv.data[KEY])
        assert stored[0]["extra"] == {"kept": True}
        assert stored[0]["quiz"][0]["source_questions"] == "Questão 3"
        assert stored[0]["quizAttempts"] == original[0]["quizAttempts"]

    def test_second_load_is_idempotent(self, memory_kv, seq_ids):
        memory_kv.data[KEY] = _legacy_blob()
        store = MaterialStore(memory_kv, id_factory=seq_ids)
        first = store.load()
        blob_after_first = memory_kv.data[KEY]
        second = store.load()
        assert second == first
        assert memory_kv.data[KEY] == blob_after_first
        assert memory_kv.writes == 1

    def test_migrate_function_twice_equals_once(self, seq_ids):
        records = json.loads(_legacy_blob())
        once, changed_once = migrate_question_ids(records, seq_ids)
        twice, changed_twice = migrate_question_ids(once, seq_ids)
        assert changed_once is True
        assert changed_twice is False
        assert twice == once

    def test_no_migration_no_write(self, store, memory_kv):
        store.save([Material(id="m1", file_name="a.pdf", display_name="a", summary="s", created_at=5)])
        writes = memory_kv.writes
        store.load()
        assert memory_kv.writes == writes

    def test_migration_write_failure_still_returns_migrated(self, seq_ids, caplog):
        kv = _FailingKV({KEY: _legacy_blob()})
        with caplog.at_level(logging.ERROR, logger="pdfquiz.store"):
            (material,) = MaterialStore(kv, id_factory=seq_ids).load()
        assert all(q.id for q in material.quiz)
        assert "Error writing state" in caplog.text


class TestSave:
    def _material(self) -> Material:
        return Material(
            id="m1",
            file_name="bio.pdf",
            display_name="Biology",
            summary="Cells.",
            quiz=(QuizQuestion(id="q1", question="What?", answer="That.", source_questions="Q5"),),
            quiz_attempts=(QuizAttempt(date=10, answers=(AnswerStatus.CORRECT,)),),
            created_at=1,
        )

    def test_round_trip(self, store):
        materials = [self._material()]
        store.save(materials)
        loaded = store.load()
        store.save(loaded)
        assert store.load() == materials

    def test_empty_collection_distinct_from_absent(self, store, memory_kv):
        store.save([])
        assert memory_kv.data[KEY] == b"[]"
        assert store.load() == []

    def test_persisted_layout_uses_original_keys(self, store, memory_kv):
        store.save([self._material()])
        (record,) = json.loads(memory_kv.data[KEY])
        assert set(record) == {"id", "fileName", "displayName", "summary", "quiz", "quizAttempts", "createdAt"}
        assert record["quiz"][0] == {"id": "q1", "question": "What?", "answer": "That.", "source_questions": "Q5"}
        assert record["quizAttempts"][0] == {"date": 10, "answers": [1]}

    def test_write_failure_is_logged_not_raised(self, caplog):
        store = MaterialStore(_FailingKV())
        with caplog.at_level(logging.ERROR, logger="pdfquiz.store"):
            store.save([self._material()])
        assert "Error writing state" in caplog.text

    def test_custom_key(self, memory_kv):
        MaterialStore(memory_kv, key="other").save([])
        assert "other" in memory_kv.data
        assert KEY not in memory_kv.data
