"""Domain models for study materials, quiz questions and attempts."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable


class AnswerStatus(IntEnum):
    """Outcome of a single question. Persisted as its integer value."""

    UNANSWERED = 0
    CORRECT = 1
    INCORRECT = 2


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def count_correct(answers: Iterable[AnswerStatus]) -> int:
    return sum(1 for a in answers if a == AnswerStatus.CORRECT)


def score_percent(answers: Iterable[AnswerStatus]) -> float:
    """Percentage of CORRECT answers; unanswered counts as wrong. 0 when empty."""
    items = list(answers)
    if not items:
        return 0.0
    return 100.0 * count_correct(items) / len(items)


def _stored_id(value: Any) -> str:
    """Read a persisted id. Only non-empty strings and integers are accepted."""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError(f"Invalid stored id: {value!r}")
    text = str(value)
    if not text.strip():
        raise ValueError("Stored id is empty.")
    return text


@dataclass(frozen=True)
class QuizQuestion:
    """Question/answer pair with free-text provenance."""

    id: str
    question: str
    answer: str
    source_questions: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "source_questions": self.source_questions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizQuestion:
        return cls(
            id=_stored_id(data["id"]),
            question=str(data.get("question") or ""),
            answer=str(data.get("answer") or ""),
            source_questions=str(data.get("source_questions") or ""),
        )


@dataclass(frozen=True)
class QuizAttempt:
    """One completed traversal of a quiz. ``answers`` follows question order."""

    date: int
    answers: tuple[AnswerStatus, ...] = ()

    @property
    def total(self) -> int:
        return len(self.answers)

    @property
    def correct_count(self) -> int:
        return count_correct(self.answers)

    @property
    def score_percent(self) -> float:
        return score_percent(self.answers)

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "answers": [int(a) for a in self.answers]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizAttempt:
        return cls(
            date=int(data["date"]),
            answers=tuple(AnswerStatus(int(a)) for a in data.get("answers") or []),
        )


@dataclass(frozen=True)
class Material:
    """One uploaded document: summary, quiz bank and attempt history."""

    id: str
    file_name: str
    display_name: str
    summary: str
    quiz: tuple[QuizQuestion, ...] = ()
    quiz_attempts: tuple[QuizAttempt, ...] = ()
    created_at: int = field(default_factory=now_ms)

    def find_question(self, question_id: str) -> QuizQuestion | None:
        return next((q for q in self.quiz if q.id == question_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "displayName": self.display_name,
            "summary": self.summary,
            "quiz": [q.to_dict() for q in self.quiz],
            "quizAttempts": [a.to_dict() for a in self.quiz_attempts],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Material:
        file_name = str(data.get("fileName") or "")
        return cls(
            id=_stored_id(data["id"]),
            file_name=file_name,
            display_name=str(data.get("displayName") or file_name),
            summary=str(data.get("summary") or ""),
            quiz=tuple(QuizQuestion.from_dict(q) for q in data.get("quiz") or []),
            quiz_attempts=tuple(QuizAttempt.from_dict(a) for a in data.get("quizAttempts") or []),
            created_at=int(data.get("createdAt") or 0),
        )


@dataclass(frozen=True)
class QuestionState:
    """Transient per-question state inside an active quiz session."""

    question: QuizQuestion
    is_revealed: bool = False
    status: AnswerStatus = AnswerStatus.UNANSWERED
