"""State machine for one in-progress quiz traversal."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable

from models import AnswerStatus, QuestionState, QuizAttempt, QuizQuestion, now_ms


class EmptyQuizError(ValueError):
    """Raised when a session is started on a quiz with no questions."""


class InvalidSessionStateError(RuntimeError):
    """Raised when a session operation is called in a state that forbids it."""


class QuizSession:
    """
    Walks a snapshot of a material's questions, one at a time.

    The question list is copied when the session starts, so later edits to the
    material cannot shift answer positions. The session is Active until
    advance() is called on the last question; it is then Completed and holds
    the resulting attempt. Reveal must precede answer for each question.
    """

    def __init__(
        self,
        material_id: str,
        questions: Iterable[QuizQuestion],
        clock: Callable[[], int] = now_ms,
    ) -> None:
        snapshot = tuple(questions)
        if not snapshot:
            raise EmptyQuizError("Cannot start a quiz with no questions.")
        self._material_id = material_id
        self._clock = clock
        self._states: list[QuestionState] = [QuestionState(question=q) for q in snapshot]
        self._index = 0
        self._attempt: QuizAttempt | None = None

    @property
    def material_id(self) -> str:
        return self._material_id

    @property
    def index(self) -> int:
        return self._index

    @property
    def total(self) -> int:
        return len(self._states)

    @property
    def progress(self) -> int:
        """1-based position of the current question."""
        return self._index + 1

    @property
    def states(self) -> tuple[QuestionState, ...]:
        return tuple(self._states)

    @property
    def current(self) -> QuestionState:
        self._require_active()
        return self._states[self._index]

    @property
    def is_completed(self) -> bool:
        return self._attempt is not None

    @property
    def attempt(self) -> QuizAttempt | None:
        return self._attempt

    def reveal(self) -> QuestionState:
        self._require_active()
        state = self._states[self._index]
        if not state.is_revealed:
            state = replace(state, is_revealed=True)
            self._states[self._index] = state
        return state

    def answer(self, status: AnswerStatus) -> QuestionState:
        """Mark the current question; may be called again before advancing."""
        self._require_active()
        if status not in (AnswerStatus.CORRECT, AnswerStatus.INCORRECT):
            raise ValueError("Answer status must be CORRECT or INCORRECT.")
        state = self._states[self._index]
        if not state.is_revealed:
            raise InvalidSessionStateError("Reveal the answer before marking it.")
        state = replace(state, status=status)
        self._states[self._index] = state
        return state

    def advance(self) -> QuizAttempt | None:
        """
        Move to the next question.

        On the last question this completes the session and returns the
        attempt; the caller hands it to MaterialRepository.append_attempt.
        """
        self._require_active()
        if self._index < len(self._states) - 1:
            self._index += 1
            return None
        self._attempt = QuizAttempt(
            date=self._clock(),
            answers=tuple(s.status for s in self._states),
        )
        return self._attempt

    def _require_active(self) -> None:
        if self._attempt is not None:
            raise InvalidSessionStateError("Quiz session is already completed.")
