"""CRUD over materials and their embedded questions and attempts."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, Protocol

from models import Material, QuizAttempt, QuizQuestion, now_ms
from services.material_store import MaterialStore
from utils.ids import new_id

LOGGER = logging.getLogger("pdfquiz.repository")


class ValidationError(ValueError):
    """Raised when a required text field is empty."""


class MaterialNotFoundError(LookupError):
    """Raised when an operation needs a material that does not exist."""


class QuestionDraft(Protocol):
    """Anything carrying question/answer text, e.g. a generated question."""

    question: str
    answer: str


def _require_text(value: str, field_name: str) -> str:
    if not (value or "").strip():
        raise ValidationError(f"{field_name} cannot be empty.")
    return value


class MaterialRepository:
    """
    In-memory material collection mirrored to a MaterialStore.

    The collection is loaded once (running the id migration) when the
    repository is created. Every mutating call persists the whole collection
    and returns fresh immutable snapshots of what it changed.
    """

    def __init__(
        self,
        store: MaterialStore,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._new_id = id_factory
        self._clock = clock
        self._materials: list[Material] = store.load_or_empty()

    # ---------- Reads ----------

    def list_materials(self) -> list[Material]:
        return list(self._materials)

    def get_material(self, material_id: str) -> Material | None:
        return next((m for m in self._materials if m.id == material_id), None)

    def latest_attempt(self, material_id: str) -> QuizAttempt | None:
        material = self.get_material(material_id)
        if material is None or not material.quiz_attempts:
            return None
        return material.quiz_attempts[-1]

    # ---------- Materials ----------

    def create_material(
        self,
        file_name: str,
        display_name: str,
        summary: str,
        questions: Iterable[QuizQuestion | QuestionDraft],
    ) -> Material:
        """Create a material with fresh ids for it and every question; newest first."""
        quiz = tuple(
            QuizQuestion(
                id=self._new_id(),
                question=q.question,
                answer=q.answer,
                source_questions=getattr(q, "source_questions", "") or "",
            )
            for q in questions
        )
        material = Material(
            id=self._new_id(),
            file_name=file_name,
            display_name=display_name or file_name,
            summary=summary,
            quiz=quiz,
            quiz_attempts=(),
            created_at=self._clock(),
        )
        self._materials.insert(0, material)
        self._persist()
        LOGGER.info("Created material %s (%d questions)", material.id, len(quiz))
        return material

    def rename_material(self, material_id: str, new_display_name: str) -> Material | None:
        """Rename a material. Unknown ids are ignored and return None."""
        if self.get_material(material_id) is None:
            return None
        clean_name = _require_text(new_display_name, "Name").strip()
        return self._update(material_id, lambda m: replace(m, display_name=clean_name))

    def delete_material(self, material_id: str) -> None:
        """Remove a material with all its questions and attempts. Idempotent."""
        remaining = [m for m in self._materials if m.id != material_id]
        if len(remaining) != len(self._materials):
            LOGGER.info("Deleted material %s", material_id)
        self._materials = remaining
        self._persist()

    # ---------- Questions ----------

    def add_question(self, material_id: str, question: str, answer: str, source_note: str = "") -> QuizQuestion:
        _require_text(question, "Question")
        _require_text(answer, "Answer")
        if self.get_material(material_id) is None:
            raise MaterialNotFoundError(f"Material {material_id!r} not found.")
        new_question = QuizQuestion(
            id=self._new_id(),
            question=question,
            answer=answer,
            source_questions=source_note or "",
        )
        self._update(material_id, lambda m: replace(m, quiz=(*m.quiz, new_question)))
        return new_question

    def edit_question(self, material_id: str, updated_question: QuizQuestion) -> Material | None:
        """Replace the question with the same id. Missing material or question is a no-op."""
        _require_text(updated_question.question, "Question")
        _require_text(updated_question.answer, "Answer")

        def _apply(m: Material) -> Material:
            return replace(
                m,
                quiz=tuple(updated_question if q.id == updated_question.id else q for q in m.quiz),
            )

        return self._update(material_id, _apply)

    def delete_question(self, material_id: str, question_id: str) -> Material | None:
        return self._update(
            material_id,
            lambda m: replace(m, quiz=tuple(q for q in m.quiz if q.id != question_id)),
        )

    # ---------- Attempts ----------

    def append_attempt(self, material_id: str, attempt: QuizAttempt) -> Material | None:
        """Append a completed attempt. Existing attempts are never touched."""
        return self._update(
            material_id,
            lambda m: replace(m, quiz_attempts=(*m.quiz_attempts, attempt)),
        )

    # ---------- Internals ----------

    def _update(self, material_id: str, fn: Callable[[Material], Material]) -> Material | None:
        for i, material in enumerate(self._materials):
            if material.id == material_id:
                updated = fn(material)
                self._materials[i] = updated
                self._persist()
                return updated
        return None

    def _persist(self) -> None:
        self._store.save(self._materials)
