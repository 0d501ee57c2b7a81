"""Domain models for the quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from study_quiz.constants.quiz_constants import DEFAULT_TIMER_SETTINGS, TIME_EXPIRED_INDEX

SWIPE_OPTIONS: tuple[str, str] = ("True", "False")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(str, Enum):
    """Difficulty tier of a question or session, ordered easy < medium < hard."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    def harder(self) -> Difficulty:
        tiers = list(Difficulty)
        return tiers[min(tiers.index(self) + 1, len(tiers) - 1)]

    def easier(self) -> Difficulty:
        tiers = list(Difficulty)
        return tiers[max(tiers.index(self) - 1, 0)]


class QuizModeType(str, Enum):
    """The four answer protocols a quiz can run in."""

    STANDARD = "standard"
    SWIPE = "swipe"
    FILL_BLANKS = "fillBlanks"
    EXPLAIN = "explain"


# --- Questions -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChoiceQuestion:
    """Multiple-choice question with exactly four options (standard or explain mode)."""

    id: str
    prompt_text: str
    options: tuple[str, ...]
    correct_index: int
    explanation_text: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    mode: QuizModeType = QuizModeType.STANDARD


@dataclass(frozen=True, slots=True)
class SwipeQuestion:
    """True/False statement; ``correct_index`` 0 means True, 1 means False."""

    id: str
    prompt_text: str
    correct_index: int
    explanation_text: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM

    @property
    def options(self) -> tuple[str, str]:
        return SWIPE_OPTIONS

    @property
    def mode(self) -> QuizModeType:
        return QuizModeType.SWIPE


@dataclass(frozen=True, slots=True)
class Blank:
    """One gap in a fill-in-the-blank prompt and the answers it accepts."""

    id: str
    accepted_answers: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class FillBlanksQuestion:
    """Prompt with ordered ``[___]`` markers, one per entry in ``blanks``."""

    id: str
    text_with_blanks: str
    blanks: tuple[Blank, ...]
    explanation_text: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM

    @property
    def prompt_text(self) -> str:
        return self.text_with_blanks

    @property
    def mode(self) -> QuizModeType:
        return QuizModeType.FILL_BLANKS


Question = ChoiceQuestion | SwipeQuestion | FillBlanksQuestion


# --- Attempts --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReasoningEvaluation:
    """Validated result of grading a free-text justification."""

    score: int
    feedback: str
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    is_fallback: bool = False


@dataclass(frozen=True, slots=True)
class ChoiceAttempt:
    """Answer record for a standard-mode question."""

    question: ChoiceQuestion
    selected_index: int
    is_correct: bool
    points: int
    explanation_text: str

    @property
    def time_expired(self) -> bool:
        return self.selected_index == TIME_EXPIRED_INDEX

    @property
    def difficulty(self) -> Difficulty:
        return self.question.difficulty


@dataclass(frozen=True, slots=True)
class SwipeAttempt:
    """Answer record for a true/false statement. Scored only at session end."""

    question: SwipeQuestion
    selected_index: int
    is_correct: bool
    points: int = 0

    @property
    def time_expired(self) -> bool:
        return self.selected_index == TIME_EXPIRED_INDEX

    @property
    def difficulty(self) -> Difficulty:
        return self.question.difficulty


@dataclass(frozen=True, slots=True)
class BlankResult:
    blank_id: str
    user_answer: str
    expected_answer: str
    is_correct: bool


@dataclass(frozen=True, slots=True)
class FillBlanksAttempt:
    """Answer record for a fill-in-the-blank question."""

    question: FillBlanksQuestion
    results: tuple[BlankResult, ...]
    points: int
    time_expired: bool = False

    @property
    def correct_blank_count(self) -> int:
        return sum(1 for result in self.results if result.is_correct)

    @property
    def overall_correct(self) -> bool:
        return bool(self.results) and all(result.is_correct for result in self.results)

    @property
    def is_correct(self) -> bool:
        return self.overall_correct

    @property
    def difficulty(self) -> Difficulty:
        return self.question.difficulty


@dataclass(frozen=True, slots=True)
class ExplainAttempt:
    """Answer record for explain mode: a choice plus a graded justification."""

    question: ChoiceQuestion
    selected_index: int
    answer_correct: bool
    user_explanation: str
    reasoning: ReasoningEvaluation
    points: int

    @property
    def is_correct(self) -> bool:
        return self.answer_correct

    @property
    def time_expired(self) -> bool:
        return self.selected_index == TIME_EXPIRED_INDEX

    @property
    def difficulty(self) -> Difficulty:
        return self.question.difficulty


AttemptedQuestion = ChoiceAttempt | SwipeAttempt | FillBlanksAttempt | ExplainAttempt


# --- Session configuration -------------------------------------------------


@dataclass(frozen=True, slots=True)
class TimerConfig:
    """Per-question countdown settings."""

    enabled: bool
    duration_seconds: int

    @classmethod
    def for_mode(cls, mode: QuizModeType) -> TimerConfig:
        enabled, duration = DEFAULT_TIMER_SETTINGS[mode.value]
        return cls(enabled=enabled, duration_seconds=duration)


@dataclass(frozen=True, slots=True)
class ExplainResponse:
    """Structured input for explain mode."""

    selected_index: int
    explanation: str


AnswerInput = int | tuple[str, ...] | ExplainResponse


# --- Multiplayer -----------------------------------------------------------


class SessionStatus(str, Enum):
    """Lifecycle of a multiplayer session. Only moves forward."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"

    def can_move_to(self, target: SessionStatus) -> bool:
        order = list(SessionStatus)
        return order.index(target) > order.index(self)


@dataclass(frozen=True, slots=True)
class Answer:
    """One participant's answer to one question. Never rewritten."""

    question_index: int
    response: AnswerInput
    is_correct: bool
    points: int
    time_spent: float
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Participant:
    """A multiplayer session member owning an append-only answer log."""

    id: str
    display_name: str
    joined_at: datetime = field(default_factory=utc_now)
    is_ready: bool = True
    answers: list[Answer] = field(default_factory=list)

    @property
    def score(self) -> int:
        return sum(answer.points for answer in self.answers)

    @property
    def correct_answers(self) -> int:
        return sum(1 for answer in self.answers if answer.is_correct)

    @property
    def total_time(self) -> float:
        return sum(answer.time_spent for answer in self.answers)

    def has_answered(self, question_index: int) -> bool:
        return any(answer.question_index == question_index for answer in self.answers)


@dataclass(slots=True)
class MultiplayerQuizSession:
    """Shared session record. Participants only ever append to their own answers."""

    id: str
    invite_code: str
    host_id: str
    host_name: str
    mode: QuizModeType
    difficulty: Difficulty
    questions: list[Question]
    title: str = "Multiplayer Quiz"
    timer: TimerConfig | None = None
    status: SessionStatus = SessionStatus.WAITING
    participants: list[Participant] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    version: int = 0  # Bumped on every mutation so readers can spot lost updates

    def get_participant(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.id == participant_id), None)

    def timer_config(self) -> TimerConfig:
        return self.timer or TimerConfig.for_mode(self.mode)


# --- Reporting -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReportInsights:
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class QuizReport:
    """Read-only summary computed once when a session ends."""

    score: int
    total_questions: int
    correct_answers: int
    overall_accuracy: int
    difficulty_progression: tuple[Difficulty, ...]
    strengths: tuple[str, ...]
    weaknesses: tuple[str, ...]
    suggestions: tuple[str, ...]
    notice: str | None = None
