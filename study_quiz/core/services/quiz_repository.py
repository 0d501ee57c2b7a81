"""Service for validating and storing the questions of a running session."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
import logging

from study_quiz.core.errors import GenerationEmpty
from study_quiz.core.matchers import count_blanks
from study_quiz.core.models import (
    Blank,
    ChoiceQuestion,
    FillBlanksQuestion,
    Question,
    QuizModeType,
    SwipeQuestion,
)

logger = logging.getLogger(__name__)


class QuestionBank:
    """Owns the append-only question list of a session.

    Generated questions are untrusted: each batch is normalized and checked
    against the model invariants, and questions that fail are dropped.
    """

    def __init__(self) -> None:
        self._questions: list[Question] = []
        self._used_ids: set[str] = set()
        self._question_counter: int = 0

    def load_questions(self, questions: Iterable[Question], mode: QuizModeType) -> list[Question]:
        """Replace the current questions with a validated first batch."""
        self.clear()
        return self.add_batch(questions, mode)

    def add_batch(self, questions: Iterable[Question], mode: QuizModeType) -> list[Question]:
        """Validate and append a batch, returning the accepted questions."""
        accepted: list[Question] = []
        for question in questions:
            try:
                prepared = self._prepare_question(question, mode)
            except ValueError as exc:
                logger.warning("Dropping generated question %r: %s", getattr(question, "id", "?"), exc)
                continue
            accepted.append(prepared)
        if not accepted:
            raise GenerationEmpty("No usable questions were generated.")
        self._questions.extend(accepted)
        return accepted

    def get_questions(self) -> list[Question]:
        """Return a copy of all loaded questions."""
        return list(self._questions)

    def clear(self) -> None:
        self._questions = []
        self._used_ids.clear()

    def _prepare_question(self, question: Question, mode: QuizModeType) -> Question:
        """Validate and normalize a question before storage."""
        match question:
            case ChoiceQuestion():
                if mode not in (QuizModeType.STANDARD, QuizModeType.EXPLAIN):
                    raise ValueError(f"Multiple-choice question does not fit {mode.value} mode.")
                prepared: Question = replace(
                    question,
                    prompt_text=self._validate_text(question.prompt_text),
                    options=self._validate_options(question.options),
                    correct_index=self._validate_index(question.correct_index, 4),
                    explanation_text=question.explanation_text.strip(),
                    mode=mode,
                )
            case SwipeQuestion():
                if mode is not QuizModeType.SWIPE:
                    raise ValueError(f"True/False statement does not fit {mode.value} mode.")
                prepared = replace(
                    question,
                    prompt_text=self._validate_text(question.prompt_text),
                    correct_index=self._validate_index(question.correct_index, 2),
                    explanation_text=question.explanation_text.strip(),
                )
            case FillBlanksQuestion():
                if mode is not QuizModeType.FILL_BLANKS:
                    raise ValueError(f"Fill-in-the-blank question does not fit {mode.value} mode.")
                text = self._validate_text(question.text_with_blanks)
                blanks = self._validate_blanks(question.blanks)
                if count_blanks(text) != len(blanks):
                    raise ValueError(
                        f"Prompt has {count_blanks(text)} blank marker(s) but {len(blanks)} blank(s) defined."
                    )
                prepared = replace(
                    question,
                    text_with_blanks=text,
                    blanks=blanks,
                    explanation_text=question.explanation_text.strip(),
                )
            case _:
                raise ValueError(f"Unsupported question type {type(question).__name__}.")
        return replace(prepared, id=self._claim_id(question.id))

    def _claim_id(self, proposed: str) -> str:
        candidate = (proposed or "").strip()
        while not candidate or candidate in self._used_ids:
            self._question_counter += 1
            candidate = f"q{self._question_counter}"
        self._used_ids.add(candidate)
        return candidate

    @staticmethod
    def _validate_text(text: str) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValueError("Question text must not be empty.")
        return cleaned

    @staticmethod
    def _validate_options(options: Iterable[str]) -> tuple[str, ...]:
        cleaned = tuple(option.strip() for option in options)
        if len(cleaned) != 4:
            raise ValueError("Each question must have exactly four options.")
        if any(not option for option in cleaned):
            raise ValueError("Option text cannot be empty.")
        return cleaned

    @staticmethod
    def _validate_index(index: int, option_count: int) -> int:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < option_count:
            raise ValueError(f"Correct option index must be between 0 and {option_count - 1}.")
        return index

    @staticmethod
    def _validate_blanks(blanks: Iterable[Blank]) -> tuple[Blank, ...]:
        prepared: list[Blank] = []
        for position, blank in enumerate(blanks):
            answers: list[str] = []
            for answer in blank.accepted_answers:
                stripped = answer.strip()
                if stripped and stripped not in answers:
                    answers.append(stripped)
            if not answers:
                raise ValueError(f"Blank {position} has no accepted answers.")
            prepared.append(Blank(id=blank.id or f"blank-{position}", accepted_answers=tuple(answers)))
        if not prepared:
            raise ValueError("Fill-in-the-blank questions need at least one blank.")
        return tuple(prepared)
