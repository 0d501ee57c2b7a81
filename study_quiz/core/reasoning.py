"""Reasoning grading with a deterministic local fallback."""

from __future__ import annotations

import asyncio
import logging

from study_quiz.constants.quiz_constants import (
    EXPIRED_FEEDBACK,
    FALLBACK_FEEDBACK,
    FALLBACK_IMPROVEMENT,
    REASONING_EXPIRED_SCORE,
    REASONING_FALLBACK_CORRECT,
    REASONING_FALLBACK_INCORRECT,
    REASONING_MAX_SCORE,
    REASONING_MIN_SCORE,
    REASONING_TIMEOUT_SECONDS,
    TIME_EXPIRED_INDEX,
)
from study_quiz.core.errors import EvaluationUnavailable
from study_quiz.core.facade import QuizBackend
from study_quiz.core.models import ChoiceQuestion, ReasoningEvaluation

logger = logging.getLogger(__name__)


def clamp_reasoning_score(score: int) -> int:
    return max(REASONING_MIN_SCORE, min(REASONING_MAX_SCORE, int(score)))


def fallback_evaluation(answer_correct: bool) -> ReasoningEvaluation:
    """Grade used whenever the external evaluator cannot be reached."""
    return ReasoningEvaluation(
        score=REASONING_FALLBACK_CORRECT if answer_correct else REASONING_FALLBACK_INCORRECT,
        feedback=FALLBACK_FEEDBACK,
        strengths=("Selected the correct answer",) if answer_correct else (),
        improvements=(FALLBACK_IMPROVEMENT,),
        is_fallback=True,
    )


def expired_evaluation() -> ReasoningEvaluation:
    return ReasoningEvaluation(
        score=REASONING_EXPIRED_SCORE,
        feedback=EXPIRED_FEEDBACK,
        improvements=(FALLBACK_IMPROVEMENT,),
    )


async def evaluate_with_fallback(
    backend: QuizBackend,
    question: ChoiceQuestion,
    selected_index: int,
    explanation: str,
    timeout: float = REASONING_TIMEOUT_SECONDS,
) -> ReasoningEvaluation:
    """Ask the backend to grade ``explanation``; never raises.

    Timeouts, transport errors and malformed payloads all collapse into
    :func:`fallback_evaluation` so the session keeps moving.
    """
    answer_correct = selected_index == question.correct_index
    if selected_index == TIME_EXPIRED_INDEX:
        return expired_evaluation()
    try:
        result = await asyncio.wait_for(
            backend.evaluate_reasoning(
                question,
                question.options[question.correct_index],
                question.options[selected_index],
                explanation,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Reasoning evaluation timed out for question %s", question.id)
        return fallback_evaluation(answer_correct)
    except EvaluationUnavailable as exc:
        logger.warning("Reasoning evaluation unavailable for question %s: %s", question.id, exc)
        return fallback_evaluation(answer_correct)
    except Exception:
        logger.exception("Reasoning evaluation failed for question %s", question.id)
        return fallback_evaluation(answer_correct)

    if not isinstance(result, ReasoningEvaluation):
        logger.warning("Reasoning evaluator returned %r; using fallback", type(result).__name__)
        return fallback_evaluation(answer_correct)
    return ReasoningEvaluation(
        score=clamp_reasoning_score(result.score),
        feedback=result.feedback,
        strengths=result.strengths,
        improvements=result.improvements,
        is_fallback=result.is_fallback,
    )
