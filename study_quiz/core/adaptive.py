"""Adaptive difficulty: look at recent attempts, move one tier, fetch more questions."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from study_quiz.constants.quiz_constants import (
    ADAPTIVE_DEESCALATE_AT,
    ADAPTIVE_ESCALATE_AT,
    ADAPTIVE_WINDOW,
    GENERATION_EMPTY_MESSAGE,
)
from study_quiz.core.errors import GenerationEmpty
from study_quiz.core.facade import QuizBackend
from study_quiz.core.models import AttemptedQuestion, Difficulty
from study_quiz.core.services.quiz_repository import QuestionBank
from study_quiz.core.session_state import (
    AppendBatch,
    ContinuationFailed,
    QuizSessionState,
    SessionEvent,
)

logger = logging.getLogger(__name__)


def next_difficulty(
    attempts: Sequence[AttemptedQuestion],
    current: Difficulty,
    window: int = ADAPTIVE_WINDOW,
) -> Difficulty:
    """Escalate after 4+ correct in the last window, de-escalate at 2 or fewer."""
    recent = list(attempts)[-window:]
    correct = sum(1 for attempt in recent if attempt.is_correct)
    if correct >= ADAPTIVE_ESCALATE_AT:
        return current.harder()
    if correct <= ADAPTIVE_DEESCALATE_AT:
        return current.easier()
    return current


class AdaptiveController:
    """Decides the next difficulty and asks the backend for a continuation batch."""

    def __init__(self, backend: QuizBackend, bank: QuestionBank) -> None:
        self._backend = backend
        self._bank = bank

    async def continue_session(self, state: QuizSessionState, source_text: str) -> SessionEvent:
        """Return the event that extends (or ends) ``state``.

        Never raises for backend trouble: an empty batch, a failed call or a
        batch with no usable questions all become :class:`ContinuationFailed`.
        """
        difficulty = next_difficulty(state.attempts, state.difficulty)
        if difficulty is not state.difficulty:
            logger.info(
                "Session %s difficulty %s -> %s",
                state.session_id,
                state.difficulty.value,
                difficulty.value,
            )
        try:
            generated = await self._backend.generate_questions(source_text, state.mode, difficulty)
            batch = self._bank.add_batch(generated, state.mode)
        except GenerationEmpty as exc:
            logger.warning("Continuation for session %s produced no questions: %s", state.session_id, exc)
            return ContinuationFailed(notice=GENERATION_EMPTY_MESSAGE)
        except Exception:
            logger.exception("Continuation for session %s failed", state.session_id)
            return ContinuationFailed(notice=GENERATION_EMPTY_MESSAGE)
        return AppendBatch(questions=tuple(batch), difficulty=difficulty)
