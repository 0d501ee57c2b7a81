"""Offline backend that serves questions from a plain-text question bank."""

from __future__ import annotations

from collections import OrderedDict
import hashlib
import logging
from pathlib import Path

from study_quiz.constants.backend_constants import QUESTIONS_PER_BATCH, SERVED_TEXTS_LIMIT
from study_quiz.core.errors import EvaluationUnavailable
from study_quiz.core.models import ChoiceQuestion, Difficulty, Question, QuizModeType, ReasoningEvaluation
from study_quiz.core.quiz_importer import load_bank_from_file

logger = logging.getLogger(__name__)


class QuestionBankBackend:
    """Serves each bank question at most once per study text.

    Questions at the requested difficulty come first; when those run out the
    remaining questions of the same mode fill the batch. Reasoning cannot be
    graded offline, so explain mode always falls back to the local grade.
    """

    def __init__(
        self,
        questions: list[Question],
        batch_size: int = QUESTIONS_PER_BATCH,
        max_texts: int = SERVED_TEXTS_LIMIT,
    ) -> None:
        self._questions = list(questions)
        self._batch_size = batch_size
        self._max_texts = max(1, max_texts)
        # Least recently used study text first.
        self._served: OrderedDict[str, set[str]] = OrderedDict()

    @classmethod
    def from_file(cls, path: Path) -> QuestionBankBackend:
        imported = load_bank_from_file(path)
        logger.info("Loaded %d question(s) from %s", len(imported.questions), path)
        return cls(imported.questions)

    async def generate_questions(
        self,
        source_text: str,
        mode: QuizModeType,
        difficulty: Difficulty,
    ) -> list[Question]:
        served = self._served_for(_text_key(source_text))
        available = [q for q in self._questions if q.mode is mode and q.id not in served]
        available.sort(key=lambda question: question.difficulty is not difficulty)
        batch = available[: self._batch_size]
        served.update(question.id for question in batch)
        return batch

    def _served_for(self, key: str) -> set[str]:
        if key in self._served:
            self._served.move_to_end(key)
            return self._served[key]
        while len(self._served) >= self._max_texts:
            self._served.popitem(last=False)
        served = self._served[key] = set()
        return served

    async def evaluate_reasoning(
        self,
        question: ChoiceQuestion,
        correct_option: str,
        chosen_option: str,
        user_explanation: str,
    ) -> ReasoningEvaluation:
        raise EvaluationUnavailable("Reasoning cannot be graded by the offline question bank.")


def _text_key(source_text: str) -> str:
    return hashlib.sha256(source_text.strip().encode("utf-8")).hexdigest()
