"""Contracts the engine needs from the outside world.

The engine never talks to a model or a datastore directly. A backend only has
to generate question batches and grade free-text reasoning; both calls are
async and may fail, and the engine converts every failure at the call site.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from study_quiz.core.models import (
    AttemptedQuestion,
    ChoiceQuestion,
    Difficulty,
    Question,
    QuizModeType,
    ReasoningEvaluation,
    ReportInsights,
)


@runtime_checkable
class QuizBackend(Protocol):
    async def generate_questions(
        self,
        source_text: str,
        mode: QuizModeType,
        difficulty: Difficulty,
    ) -> list[Question]:
        """Return a batch of questions. An empty list means the batch failed."""
        ...

    async def evaluate_reasoning(
        self,
        question: ChoiceQuestion,
        correct_option: str,
        chosen_option: str,
        user_explanation: str,
    ) -> ReasoningEvaluation:
        """Grade the justification on a 1-5 scale. May raise or time out."""
        ...


@runtime_checkable
class ReportAdvisor(Protocol):
    """Optional collaborator that turns attempts into study advice (None when it has none)."""

    async def summarize_performance(
        self,
        attempts: Sequence[AttemptedQuestion],
    ) -> ReportInsights | None:
        ...
