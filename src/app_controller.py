"""Application controller: view modes, uploads, quiz flow and quiz editing."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from config import (
    MSG_EMPTY_AI_TEXT,
    MSG_EMPTY_FIELDS,
    MSG_EMPTY_QUIZ,
    MSG_EXTRACTING,
    MSG_EXTRACTION_FAILED,
    MSG_GENERATING,
    MSG_GENERATION_FAILED,
    MSG_QUESTION_FAILED,
    OPENAI_API_KEY,
    SOURCE_AI_SNIPPET,
    SOURCE_MANUAL,
)
from models import AnswerStatus, Material, QuestionState, QuizAttempt, QuizQuestion
from services.document_processor import ExtractionError
from services.material_repository import MaterialNotFoundError, MaterialRepository, ValidationError
from services.quiz_generator import GeneratedQuestion, GeneratedQuiz, GenerationError
from services.quiz_session import EmptyQuizError, InvalidSessionStateError, QuizSession
from utils.metrics import log_metric

LOGGER = logging.getLogger("pdfquiz.controller")


class ViewMode(str, Enum):
    UPLOAD = "upload"
    LOADING = "loading"
    DASHBOARD = "dashboard"
    QUIZ = "quiz"
    RESULTS = "results"


class TextExtractor(Protocol):
    def extract_text_from_bytes(self, data: bytes) -> str: ...


class QuizSource(Protocol):
    def generate_quiz_and_summary(self, text: str, api_key: str) -> GeneratedQuiz: ...

    def generate_one_question(self, text: str, api_key: str) -> GeneratedQuestion: ...


@dataclass(frozen=True)
class QuizResult:
    attempt: QuizAttempt
    correct: int
    total: int
    score_percent: float


def display_name_for(file_name: str) -> str:
    """File name without a trailing .pdf (any case)."""
    return re.sub(r"\.pdf$", "", file_name, flags=re.IGNORECASE)


class AppController:
    """
    Routes user intents to the repository and the quiz session.

    Holds the current view mode, the selected material, the single active
    quiz session and the last user-facing error. Only one upload or question
    generation may be pending at a time; a pending upload that is abandoned
    (add_new, select_material, cancel_upload) has its result discarded.
    """

    def __init__(
        self,
        repository: MaterialRepository,
        extractor: TextExtractor,
        generator: QuizSource,
        api_key: str = OPENAI_API_KEY,
        record_metric: Callable[..., None] = log_metric,
    ) -> None:
        self._repo = repository
        self._extractor = extractor
        self._generator = generator
        self._api_key = api_key
        self._record_metric = record_metric

        self.mode: ViewMode = ViewMode.UPLOAD
        self.active_material_id: str | None = None
        self.session: QuizSession | None = None
        self.loading_message: str = ""
        self.error: str | None = None
        self.is_generating_question: bool = False
        self._upload_token = 0

        materials = self._repo.list_materials()
        if materials:
            self.active_material_id = materials[0].id
            self.mode = ViewMode.DASHBOARD

    # ---------- Reads ----------

    @property
    def materials(self) -> list[Material]:
        return self._repo.list_materials()

    @property
    def active_material(self) -> Material | None:
        if self.active_material_id is None:
            return None
        return self._repo.get_material(self.active_material_id)

    @property
    def current_question(self) -> QuestionState | None:
        if self.mode is not ViewMode.QUIZ or self.session is None:
            return None
        return self.session.current

    def results(self) -> QuizResult | None:
        if self.active_material_id is None:
            return None
        attempt = self._repo.latest_attempt(self.active_material_id)
        if attempt is None:
            return None
        return QuizResult(
            attempt=attempt,
            correct=attempt.correct_count,
            total=attempt.total,
            score_percent=attempt.score_percent,
        )

    # ---------- Upload ----------

    async def upload_pdf(self, file_name: str, data: bytes) -> Material | None:
        """
        Extract, generate and store a new material.

        Returns the material, or None when the upload failed or was abandoned.
        On failure the mode returns to upload and ``error`` is set; nothing
        is stored.
        """
        if self.mode is not ViewMode.UPLOAD:
            raise InvalidSessionStateError(f"Cannot upload while in {self.mode.value} mode.")
        self._upload_token += 1
        token = self._upload_token
        self.mode = ViewMode.LOADING
        self.loading_message = MSG_EXTRACTING
        self.error = None

        try:
            started = time.perf_counter()
            text = await asyncio.to_thread(self._extractor.extract_text_from_bytes, data)
            self._record_metric("extract", time.perf_counter() - started, chars=len(text))
        except ExtractionError as e:
            LOGGER.warning("Extraction failed for %s: %s", file_name, e)
            self._fail_upload(token, MSG_EXTRACTION_FAILED)
            return None
        if token != self._upload_token:
            LOGGER.info("Discarding extraction result of abandoned upload %s", file_name)
            return None

        self.loading_message = MSG_GENERATING
        try:
            started = time.perf_counter()
            generated = await asyncio.to_thread(self._generator.generate_quiz_and_summary, text, self._api_key)
            elapsed = time.perf_counter() - started
        except GenerationError as e:
            LOGGER.warning("Generation failed for %s: %s", file_name, e)
            self._fail_upload(token, MSG_GENERATION_FAILED)
            return None
        if token != self._upload_token:
            LOGGER.info("Discarding generation result of abandoned upload %s", file_name)
            return None

        material = self._repo.create_material(
            file_name=file_name,
            display_name=display_name_for(file_name),
            summary=generated.summary,
            questions=generated.questions,
        )
        self._record_metric("generate", elapsed, material_id=material.id, questions=len(material.quiz))
        self.active_material_id = material.id
        self.loading_message = ""
        self.mode = ViewMode.DASHBOARD
        return material

    def cancel_upload(self) -> None:
        """Abandon a pending upload and return to the upload view."""
        if self.mode is ViewMode.LOADING:
            self._upload_token += 1
            self.loading_message = ""
            self.mode = ViewMode.UPLOAD

    def _fail_upload(self, token: int, message: str) -> None:
        if token != self._upload_token:
            return
        self.error = message
        self.loading_message = ""
        self.mode = ViewMode.UPLOAD

    # ---------- Navigation / materials ----------

    def add_new(self) -> None:
        self._upload_token += 1
        self.session = None
        self.active_material_id = None
        self.loading_message = ""
        self.mode = ViewMode.UPLOAD

    def select_material(self, material_id: str) -> None:
        if self._repo.get_material(material_id) is None:
            return
        self._upload_token += 1
        self.session = None
        self.loading_message = ""
        self.active_material_id = material_id
        self.mode = ViewMode.DASHBOARD

    def rename_material(self, material_id: str, new_name: str) -> Material | None:
        try:
            return self._repo.rename_material(material_id, new_name)
        except ValidationError:
            # A blank rename keeps the current name.
            return None

    def delete_material(self, material_id: str) -> None:
        self._repo.delete_material(material_id)
        if self.session is not None and self.session.material_id == material_id:
            self.session = None
        if self.active_material_id != material_id:
            return
        remaining = self._repo.list_materials()
        if remaining:
            self.active_material_id = remaining[0].id
            self.mode = ViewMode.DASHBOARD
        else:
            self.active_material_id = None
            self.mode = ViewMode.UPLOAD

    def back_to_dashboard(self) -> None:
        self.session = None
        self.mode = ViewMode.DASHBOARD if self.active_material is not None else ViewMode.UPLOAD

    # ---------- Quiz flow ----------

    def start_quiz(self) -> QuizSession | None:
        material = self.active_material
        if material is None:
            self.error = MSG_EMPTY_QUIZ
            return None
        try:
            session = QuizSession(material.id, material.quiz)
        except EmptyQuizError:
            self.error = MSG_EMPTY_QUIZ
            return None
        self.error = None
        self.session = session
        self.mode = ViewMode.QUIZ
        return session

    def reveal_answer(self) -> QuestionState:
        return self._require_session().reveal()

    def answer(self, status: AnswerStatus) -> QuestionState:
        return self._require_session().answer(status)

    def next_question(self) -> QuizAttempt | None:
        """Advance; on the last question record the attempt and show results."""
        session = self._require_session()
        attempt = session.advance()
        if attempt is None:
            return None
        self._repo.append_attempt(session.material_id, attempt)
        self.mode = ViewMode.RESULTS
        return attempt

    def _require_session(self) -> QuizSession:
        if self.mode is not ViewMode.QUIZ or self.session is None:
            raise InvalidSessionStateError("No quiz in progress.")
        return self.session

    # ---------- Quiz editing ----------

    def add_question(self, question: str, answer: str) -> QuizQuestion | None:
        material_id = self._require_editable()
        try:
            created = self._repo.add_question(material_id, question, answer, SOURCE_MANUAL)
        except ValidationError:
            self.error = MSG_EMPTY_FIELDS
            return None
        self.error = None
        return created

    def edit_question(self, question_id: str, question: str, answer: str) -> QuizQuestion | None:
        """Change question and answer text, keeping the id and provenance."""
        material_id = self._require_editable()
        material = self._repo.get_material(material_id)
        original = material.find_question(question_id) if material is not None else None
        if original is None:
            return None
        updated = QuizQuestion(
            id=original.id,
            question=question,
            answer=answer,
            source_questions=original.source_questions,
        )
        try:
            self._repo.edit_question(material_id, updated)
        except ValidationError:
            self.error = MSG_EMPTY_FIELDS
            return None
        self.error = None
        return updated

    def delete_question(self, question_id: str) -> None:
        self._repo.delete_question(self._require_editable(), question_id)

    async def generate_question(self, text: str) -> QuizQuestion | None:
        """Ask the LLM for one question from *text* and add it to the active material."""
        material_id = self._require_editable()
        if self.is_generating_question:
            raise InvalidSessionStateError("A question is already being generated.")
        if not (text or "").strip():
            self.error = MSG_EMPTY_AI_TEXT
            return None
        self.error = None
        self.is_generating_question = True
        try:
            started = time.perf_counter()
            generated = await asyncio.to_thread(self._generator.generate_one_question, text, self._api_key)
            self._record_metric("generate_question", time.perf_counter() - started, material_id=material_id)
        except GenerationError as e:
            LOGGER.warning("Single question generation failed: %s", e)
            self.error = MSG_QUESTION_FAILED
            return None
        finally:
            self.is_generating_question = False
        try:
            return self._repo.add_question(material_id, generated.question, generated.answer, SOURCE_AI_SNIPPET)
        except MaterialNotFoundError:
            LOGGER.info("Discarding generated question for deleted material %s", material_id)
            return None

    def _require_editable(self) -> str:
        if self.mode is ViewMode.QUIZ:
            raise InvalidSessionStateError("The quiz cannot be edited during a session.")
        if self.active_material_id is None:
            raise InvalidSessionStateError("No material selected.")
        return self.active_material_id


def build_default_controller(**kwargs: Any) -> AppController:
    """Wire the controller to the local SQLite database, pypdf and the LLM."""
    from migrations.migrate import migrate_to_latest
    from services.document_processor import PDFProcessor
    from services.kv_store import SQLiteKeyValueStore
    from services.material_store import MaterialStore
    from services.quiz_generator import QuizGenerator

    migrate_to_latest()
    repository = MaterialRepository(MaterialStore(SQLiteKeyValueStore()))
    return AppController(repository, PDFProcessor(), QuizGenerator(), **kwargs)
