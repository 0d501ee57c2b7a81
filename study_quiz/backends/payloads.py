"""Validation of raw JSON returned by a generation model.

Model output is untrusted. Every item is parsed into a narrow pydantic model;
items that fail validation are dropped with a warning, and only validated
values are turned into engine questions or evaluations.
"""

from __future__ import annotations

from abc import abstractmethod
import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from study_quiz.constants.quiz_constants import (
    REASONING_MAX_ITEM_LENGTH,
    REASONING_MAX_LIST_ITEMS,
    REASONING_MAX_SCORE,
    REASONING_MIN_SCORE,
)
from study_quiz.core.errors import EvaluationUnavailable
from study_quiz.core.models import (
    Blank,
    ChoiceQuestion,
    Difficulty,
    FillBlanksQuestion,
    Question,
    QuizModeType,
    ReasoningEvaluation,
    ReportInsights,
    SwipeQuestion,
)

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$")


def _bounded_strings(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    cleaned = [str(value).strip()[:REASONING_MAX_ITEM_LENGTH] for value in values if str(value).strip()]
    return cleaned[:REASONING_MAX_LIST_ITEMS]


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class _QuestionPayload(_Payload):
    id: str = ""
    explanation: str = ""
    difficulty: Difficulty | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _lenient_difficulty(cls, value: Any) -> Difficulty | None:
        # An unknown tier falls back to the requested difficulty instead of dropping the item.
        try:
            return Difficulty(str(value).strip().lower())
        except ValueError:
            return None

    @abstractmethod
    def to_question(self, mode: QuizModeType, difficulty: Difficulty) -> Question:
        """Build the engine question, falling back to the requested tier."""


class ChoiceQuestionPayload(_QuestionPayload):
    text: str = Field(min_length=1)
    options: list[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(alias="correctIndex", ge=0, le=3)

    def to_question(self, mode: QuizModeType, difficulty: Difficulty) -> ChoiceQuestion:
        return ChoiceQuestion(
            id=self.id,
            prompt_text=self.text,
            options=tuple(self.options),
            correct_index=self.correct_index,
            explanation_text=self.explanation,
            difficulty=self.difficulty or difficulty,
            mode=mode,
        )


class SwipeQuestionPayload(_QuestionPayload):
    text: str = Field(min_length=1)
    correct_index: int = Field(alias="correctIndex", ge=0, le=1)

    def to_question(self, mode: QuizModeType, difficulty: Difficulty) -> SwipeQuestion:
        # Options are always True/False regardless of what the model sent.
        return SwipeQuestion(
            id=self.id,
            prompt_text=self.text,
            correct_index=self.correct_index,
            explanation_text=self.explanation,
            difficulty=self.difficulty or difficulty,
        )


class BlankPayload(_Payload):
    id: str = ""
    correct_answers: list[str] = Field(alias="correctAnswers", min_length=1)


class FillBlanksQuestionPayload(_QuestionPayload):
    text_with_blanks: str = Field(alias="textWithBlanks", min_length=1)
    blanks: list[BlankPayload] = Field(min_length=1)

    def to_question(self, mode: QuizModeType, difficulty: Difficulty) -> FillBlanksQuestion:
        return FillBlanksQuestion(
            id=self.id,
            text_with_blanks=self.text_with_blanks,
            blanks=tuple(
                Blank(id=blank.id or f"blank-{index}", accepted_answers=tuple(blank.correct_answers))
                for index, blank in enumerate(self.blanks)
            ),
            explanation_text=self.explanation,
            difficulty=self.difficulty or difficulty,
        )


class ReasoningPayload(_Payload):
    score: int
    feedback: str = ""
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        try:
            score = int(round(float(value)))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"score must be a number, got {value!r}") from exc
        return max(REASONING_MIN_SCORE, min(REASONING_MAX_SCORE, score))

    @field_validator("strengths", "improvements", mode="before")
    @classmethod
    def _bound_lists(cls, value: Any) -> list[str]:
        return _bounded_strings(value)

    def to_evaluation(self) -> ReasoningEvaluation:
        return ReasoningEvaluation(
            score=self.score,
            feedback=self.feedback[:REASONING_MAX_ITEM_LENGTH * 2],
            strengths=tuple(self.strengths),
            improvements=tuple(self.improvements),
        )


class ReportPayload(_Payload):
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("strengths", "weaknesses", "suggestions", mode="before")
    @classmethod
    def _bound_lists(cls, value: Any) -> list[str]:
        return _bounded_strings(value)

    def to_insights(self) -> ReportInsights:
        return ReportInsights(
            strengths=tuple(self.strengths),
            weaknesses=tuple(self.weaknesses),
            suggestions=tuple(self.suggestions),
        )


_QUESTION_PAYLOADS: dict[QuizModeType, type[_QuestionPayload]] = {
    QuizModeType.STANDARD: ChoiceQuestionPayload,
    QuizModeType.EXPLAIN: ChoiceQuestionPayload,
    QuizModeType.SWIPE: SwipeQuestionPayload,
    QuizModeType.FILL_BLANKS: FillBlanksQuestionPayload,
}


def load_json(raw_text: str | None) -> Any:
    """Parse model output, tolerating markdown code fences. Returns None on failure."""
    if not raw_text:
        return None
    cleaned = _FENCE_PATTERN.sub("", raw_text.strip()).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Model returned text that is not valid JSON")
        return None


def parse_question_batch(raw_text: str | None, mode: QuizModeType, difficulty: Difficulty) -> list[Question]:
    """Turn a JSON array of question objects into questions, dropping bad items."""
    data = load_json(raw_text)
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        return []
    payload_type = _QUESTION_PAYLOADS[mode]
    questions: list[Question] = []
    for position, item in enumerate(data):
        try:
            payload = payload_type.model_validate(item)
        except ValidationError as exc:
            logger.warning("Dropping malformed %s question %d (%d validation error(s))", mode.value, position, exc.error_count())
            continue
        questions.append(payload.to_question(mode, difficulty))
    return questions


def parse_reasoning(raw_text: str | None) -> ReasoningEvaluation:
    """Validate a reasoning grade. Raises :class:`EvaluationUnavailable` when malformed."""
    data = load_json(raw_text)
    try:
        return ReasoningPayload.model_validate(data).to_evaluation()
    except ValidationError as exc:
        raise EvaluationUnavailable(f"Malformed reasoning evaluation ({exc.error_count()} error(s)).") from exc


def parse_report(raw_text: str | None) -> ReportInsights | None:
    data = load_json(raw_text)
    try:
        return ReportPayload.model_validate(data).to_insights()
    except ValidationError:
        logger.warning("Dropping malformed performance summary")
        return None
