"""
Quiz and summary generation from document text, validated at the boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from config import MAX_DOCUMENT_CHARS, MAX_SNIPPET_CHARS, QUIZ_MAX_QUESTIONS, QUIZ_MIN_QUESTIONS
from services.llm_service import LLMProcessor

LOGGER = logging.getLogger("pdfquiz.generator")

QUIZ_SYSTEM_PROMPT = (
    "You are a study assistant specialised in exam preparation. "
    "Analyse the text of a study PDF and build a quiz on the topics most likely to appear in exams, "
    "ignoring introductory material.\n"
    "Quiz: focus on the section of worked/commented past exam questions, usually near the end of the "
    "document. Identify the concepts and rules they test repeatedly and write "
    f"{QUIZ_MIN_QUESTIONS} to {QUIZ_MAX_QUESTIONS} direct, exam-style questions about them. "
    "For every question, state in 'source_questions' which original question(s) inspired it "
    "(e.g. 'Based on questions 5 and 12'); this field is mandatory.\n"
    "Summary: using the whole text, write a review summary detailed enough for recall.\n"
    "Return ONLY valid JSON (no markdown, no extra text) with this schema:\n"
    "{\n"
    '  "summary": "string",\n'
    '  "quiz": [\n'
    '    {"question": "string", "answer": "string", "source_questions": "string"}\n'
    "  ]\n"
    "}"
)

SINGLE_QUESTION_SYSTEM_PROMPT = (
    "You are a study assistant. Your only task is to write ONE quiz question and ONE answer "
    "based on the provided text. The question must be clear and directly related to the text; "
    "the answer must be accurate and concise.\n"
    "Return ONLY valid JSON (no markdown, no extra text) with this schema:\n"
    '{"question": "string", "answer": "string"}'
)


class GenerationError(RuntimeError):
    """Raised when generation fails or the model output has the wrong shape."""


@dataclass(frozen=True)
class GeneratedQuestion:
    question: str
    answer: str
    source_questions: str = ""


@dataclass(frozen=True)
class GeneratedQuiz:
    summary: str
    questions: tuple[GeneratedQuestion, ...]


def _non_empty_str(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def _validate_quiz_response(obj: Any) -> GeneratedQuiz:
    """
    Convert a parsed model reply into a GeneratedQuiz.

    Every quiz item must carry non-empty question, answer and source_questions.

    Raises:
        GenerationError: On any shape mismatch.
    """
    if not isinstance(obj, dict):
        raise GenerationError("Response is not a JSON object.")
    summary = _non_empty_str(obj.get("summary"))
    if summary is None:
        raise GenerationError("Response is missing a summary.")
    items = obj.get("quiz")
    if not isinstance(items, list):
        raise GenerationError("Response 'quiz' must be a list.")
    questions: list[GeneratedQuestion] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise GenerationError(f"Quiz item {i} is not an object.")
        question = _non_empty_str(item.get("question"))
        answer = _non_empty_str(item.get("answer"))
        source = _non_empty_str(item.get("source_questions"))
        if question is None or answer is None:
            raise GenerationError(f"Quiz item {i} is missing question or answer.")
        if source is None:
            raise GenerationError(f"Quiz item {i} is missing source_questions.")
        questions.append(GeneratedQuestion(question=question, answer=answer, source_questions=source))
    return GeneratedQuiz(summary=summary, questions=tuple(questions))


def _validate_single_question(obj: Any) -> GeneratedQuestion:
    if not isinstance(obj, dict):
        raise GenerationError("Response is not a JSON object.")
    question = _non_empty_str(obj.get("question"))
    answer = _non_empty_str(obj.get("answer"))
    if question is None or answer is None:
        raise GenerationError("Response is missing question or answer.")
    return GeneratedQuestion(question=question, answer=answer)


class QuizGenerator:
    """Generates a summary plus quiz, or a single question, via the LLM."""

    def __init__(self, llm: LLMProcessor | None = None) -> None:
        self._llm = llm or LLMProcessor()

    def generate_quiz_and_summary(self, text: str, api_key: str) -> GeneratedQuiz:
        """
        Generate a summary and a quiz from full document text.

        Raises:
            GenerationError: If the API call fails or the reply is malformed.
        """
        user_message = f"PDF text to analyse:\n---\n{text[:MAX_DOCUMENT_CHARS]}\n---"
        try:
            parsed = self._llm.invoke_json(QUIZ_SYSTEM_PROMPT, user_message, api_key=api_key, temperature=0.4)
        except ValueError as e:
            raise GenerationError(str(e)) from e
        quiz = _validate_quiz_response(parsed)
        LOGGER.info("Generated summary and %d questions", len(quiz.questions))
        return quiz

    def generate_one_question(self, text: str, api_key: str) -> GeneratedQuestion:
        """
        Generate one question/answer pair from a text snippet.

        Raises:
            GenerationError: If the API call fails or the reply is malformed.
        """
        user_message = f"Text to analyse:\n---\n{text[:MAX_SNIPPET_CHARS]}\n---"
        try:
            parsed = self._llm.invoke_json(
                SINGLE_QUESTION_SYSTEM_PROMPT, user_message, api_key=api_key, temperature=0.4
            )
        except ValueError as e:
            raise GenerationError(str(e)) from e
        return _validate_single_question(parsed)
