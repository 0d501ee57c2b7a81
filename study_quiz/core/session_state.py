"""Quiz session state and its pure transition function.

A session is an immutable :class:`QuizSessionState`. Every change, whether a
user answer, a one-second timer tick or the arrival of a grading result, is an
event applied with :func:`transition`, which returns a new state and never
performs I/O. The async :class:`~study_quiz.core.quiz_manager.QuizManager`
feeds events in; tests can do the same and step time one tick at a time.

Views::

    setup -> playing -> results                     (singleplayer)
    setup -> waiting -> playing -> leaderboard      (multiplayer)
    results / leaderboard -> setup                  (reset)

Inside ``playing`` each question moves ``unanswered -> answered`` (explain
mode passes through ``evaluating``). Only ``unanswered`` accepts input, so the
timer's auto-submit and a user submit can never both score a question.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from study_quiz.constants.quiz_constants import TIME_EXPIRED_INDEX, TIME_EXPIRED_PREFIX
from study_quiz.core.errors import GenerationEmpty
from study_quiz.core.matchers import match_blanks, match_choice
from study_quiz.core.models import (
    AttemptedQuestion,
    ChoiceAttempt,
    ChoiceQuestion,
    Difficulty,
    ExplainAttempt,
    FillBlanksAttempt,
    FillBlanksQuestion,
    Question,
    QuizModeType,
    QuizReport,
    ReasoningEvaluation,
    SwipeAttempt,
    SwipeQuestion,
    TimerConfig,
)
from study_quiz.core.reasoning import expired_evaluation
from study_quiz.core.scoring import (
    explain_points,
    fill_blanks_points,
    final_session_score,
    next_streak,
    standard_points,
)


class View(str, Enum):
    SETUP = "setup"
    WAITING = "waiting"
    PLAYING = "playing"
    LEADERBOARD = "leaderboard"
    RESULTS = "results"


class QuestionPhase(str, Enum):
    UNANSWERED = "unanswered"
    EVALUATING = "evaluating"
    ANSWERED = "answered"


@dataclass(frozen=True, slots=True)
class PendingExplanation:
    """Explain-mode submission parked while the grader runs."""

    selected_index: int
    explanation: str
    time_remaining: int


@dataclass(frozen=True, slots=True)
class QuizSessionState:
    session_id: str = ""
    view: View = View.SETUP
    mode: QuizModeType = QuizModeType.STANDARD
    questions: tuple[Question, ...] = ()
    current_index: int = 0
    score: int = 0
    streak: int = 0
    difficulty: Difficulty = Difficulty.MEDIUM
    timer: TimerConfig = field(default_factory=lambda: TimerConfig.for_mode(QuizModeType.STANDARD))
    time_remaining: int = 0
    elapsed_seconds: int = 0
    phase: QuestionPhase = QuestionPhase.UNANSWERED
    attempts: tuple[AttemptedQuestion, ...] = ()
    pending: PendingExplanation | None = None
    multiplayer: bool = False
    notice: str | None = None
    report: QuizReport | None = None

    @property
    def current_question(self) -> Question | None:
        if self.view is not View.PLAYING:
            return None
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def accepting_input(self) -> bool:
        return self.current_question is not None and self.phase is QuestionPhase.UNANSWERED

    @property
    def at_end_of_batch(self) -> bool:
        return (
            self.view is View.PLAYING
            and self.phase is QuestionPhase.ANSWERED
            and self.current_index >= len(self.questions) - 1
        )

    @property
    def last_attempt(self) -> AttemptedQuestion | None:
        return self.attempts[-1] if self.attempts else None


# --- Events ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StartSession:
    session_id: str
    questions: tuple[Question, ...]
    mode: QuizModeType
    timer: TimerConfig
    difficulty: Difficulty = Difficulty.MEDIUM
    multiplayer: bool = False
    wait_for_host: bool = False


@dataclass(frozen=True, slots=True)
class BeginPlay:
    pass


@dataclass(frozen=True, slots=True)
class Tick:
    pass


@dataclass(frozen=True, slots=True)
class SubmitChoice:
    selected_index: int


@dataclass(frozen=True, slots=True)
class SubmitBlanks:
    responses: tuple[str, ...] | Mapping[str, str]


@dataclass(frozen=True, slots=True)
class SubmitExplanation:
    selected_index: int
    explanation: str


@dataclass(frozen=True, slots=True)
class ReasoningGraded:
    session_id: str
    question_index: int
    evaluation: ReasoningEvaluation


@dataclass(frozen=True, slots=True)
class Advance:
    pass


@dataclass(frozen=True, slots=True)
class AppendBatch:
    questions: tuple[Question, ...]
    difficulty: Difficulty


@dataclass(frozen=True, slots=True)
class ContinuationFailed:
    notice: str


@dataclass(frozen=True, slots=True)
class Finish:
    pass


@dataclass(frozen=True, slots=True)
class ReportReady:
    session_id: str
    report: QuizReport


@dataclass(frozen=True, slots=True)
class Reset:
    pass


SessionEvent = (
    StartSession
    | BeginPlay
    | Tick
    | SubmitChoice
    | SubmitBlanks
    | SubmitExplanation
    | ReasoningGraded
    | Advance
    | AppendBatch
    | ContinuationFailed
    | Finish
    | ReportReady
    | Reset
)


def transition(state: QuizSessionState, event: SessionEvent) -> QuizSessionState:
    """Apply ``event`` to ``state`` and return the resulting state."""
    match event:
        case StartSession():
            return _start(state, event)
        case BeginPlay():
            if state.view is not View.WAITING:
                return state
            return _reset_question(replace(state, view=View.PLAYING))
        case Tick():
            return _tick(state)
        case SubmitChoice(selected_index=selected_index):
            return _submit_choice(state, selected_index)
        case SubmitBlanks(responses=responses):
            return _submit_blanks(state, responses)
        case SubmitExplanation(selected_index=selected_index, explanation=explanation):
            return _submit_explanation(state, selected_index, explanation)
        case ReasoningGraded():
            return _apply_grade(state, event)
        case Advance():
            return _advance(state)
        case AppendBatch(questions=questions, difficulty=difficulty):
            return _append_batch(state, questions, difficulty)
        case ContinuationFailed(notice=notice):
            if state.view is not View.PLAYING:
                return state
            return _finish(replace(state, notice=notice))
        case Finish():
            return _finish(state)
        case ReportReady(session_id=session_id, report=report):
            if session_id != state.session_id or state.view not in (View.RESULTS, View.LEADERBOARD):
                return state
            return replace(state, report=report)
        case Reset():
            return QuizSessionState()
    raise TypeError(f"Unknown session event: {event!r}")


# --- Lifecycle -------------------------------------------------------------


def _start(state: QuizSessionState, event: StartSession) -> QuizSessionState:
    if state.view is not View.SETUP:
        raise RuntimeError("A quiz session is already running; reset it first.")
    if not event.questions:
        raise GenerationEmpty("Cannot start a quiz without questions.")
    view = View.WAITING if event.wait_for_host else View.PLAYING
    started = QuizSessionState(
        session_id=event.session_id,
        view=view,
        mode=event.mode,
        questions=tuple(event.questions),
        difficulty=event.difficulty,
        timer=event.timer,
        multiplayer=event.multiplayer,
    )
    return _reset_question(started)


def _reset_question(state: QuizSessionState) -> QuizSessionState:
    return replace(
        state,
        phase=QuestionPhase.UNANSWERED,
        pending=None,
        time_remaining=state.timer.duration_seconds,
        elapsed_seconds=0,
    )


def _advance(state: QuizSessionState) -> QuizSessionState:
    if state.view is not View.PLAYING or state.phase is not QuestionPhase.ANSWERED:
        return state
    if state.current_index >= len(state.questions) - 1:
        return state
    return _reset_question(replace(state, current_index=state.current_index + 1))


def _append_batch(
    state: QuizSessionState,
    questions: Sequence[Question],
    difficulty: Difficulty,
) -> QuizSessionState:
    if state.view is not View.PLAYING or not questions:
        return state
    was_at_end = state.at_end_of_batch
    extended = replace(
        state,
        questions=state.questions + tuple(questions),
        difficulty=difficulty,
    )
    if was_at_end:
        return _reset_question(replace(extended, current_index=len(state.questions)))
    return extended


def _finish(state: QuizSessionState) -> QuizSessionState:
    if state.view is not View.PLAYING:
        return state
    target = View.LEADERBOARD if state.multiplayer else View.RESULTS
    return replace(
        state,
        view=target,
        phase=QuestionPhase.ANSWERED,
        pending=None,
        score=final_session_score(state.mode, state.attempts, state.score),
    )


# --- Timer -----------------------------------------------------------------


def _tick(state: QuizSessionState) -> QuizSessionState:
    if not state.accepting_input:
        return state
    ticked = replace(state, elapsed_seconds=state.elapsed_seconds + 1)
    if not state.timer.enabled:
        return ticked
    remaining = max(state.time_remaining - 1, 0)
    ticked = replace(ticked, time_remaining=remaining)
    if remaining > 0:
        return ticked
    return _expire(ticked)


def _expire(state: QuizSessionState) -> QuizSessionState:
    """Submit the time-expired value for whatever kind of question is showing."""
    question = state.current_question
    match question:
        case SwipeQuestion():
            return _submit_choice(state, TIME_EXPIRED_INDEX)
        case FillBlanksQuestion():
            return _record_blanks(state, question, (), time_expired=True)
        case ChoiceQuestion(mode=QuizModeType.EXPLAIN):
            return _submit_explanation(state, TIME_EXPIRED_INDEX, "")
        case ChoiceQuestion():
            return _submit_choice(state, TIME_EXPIRED_INDEX)
    return state


# --- Answers ---------------------------------------------------------------


def _check_index(question: ChoiceQuestion | SwipeQuestion, selected_index: int) -> None:
    if selected_index == TIME_EXPIRED_INDEX:
        return
    if not 0 <= selected_index < len(question.options):
        raise ValueError(f"Option index {selected_index} is out of range.")


def _record(state: QuizSessionState, attempt: AttemptedQuestion, fully_correct: bool) -> QuizSessionState:
    return replace(
        state,
        attempts=state.attempts + (attempt,),
        score=state.score + attempt.points,
        streak=next_streak(state.streak, fully_correct),
        phase=QuestionPhase.ANSWERED,
        pending=None,
    )


def _submit_choice(state: QuizSessionState, selected_index: int) -> QuizSessionState:
    if not state.accepting_input:
        return state
    question = state.current_question
    match question:
        case SwipeQuestion():
            _check_index(question, selected_index)
            is_correct = match_choice(question, selected_index)
            attempt = SwipeAttempt(question=question, selected_index=selected_index, is_correct=is_correct)
            return _record(state, attempt, is_correct)
        case ChoiceQuestion(mode=QuizModeType.STANDARD):
            _check_index(question, selected_index)
            is_correct = match_choice(question, selected_index)
            points = standard_points(is_correct, state.streak, state.time_remaining, state.timer.enabled)
            explanation = question.explanation_text
            if selected_index == TIME_EXPIRED_INDEX:
                explanation = TIME_EXPIRED_PREFIX + explanation
            attempt = ChoiceAttempt(
                question=question,
                selected_index=selected_index,
                is_correct=is_correct,
                points=points,
                explanation_text=explanation,
            )
            return _record(state, attempt, is_correct)
    raise ValueError("The current question does not take a single option; use the matching submission.")


def _submit_blanks(
    state: QuizSessionState,
    responses: tuple[str, ...] | Mapping[str, str],
) -> QuizSessionState:
    if not state.accepting_input:
        return state
    question = state.current_question
    if not isinstance(question, FillBlanksQuestion):
        raise ValueError("The current question is not a fill-in-the-blank question.")
    return _record_blanks(state, question, responses, time_expired=False)


def _record_blanks(
    state: QuizSessionState,
    question: FillBlanksQuestion,
    responses: tuple[str, ...] | Mapping[str, str],
    time_expired: bool,
) -> QuizSessionState:
    results = match_blanks(question, responses)
    correct = sum(1 for result in results if result.is_correct)
    points = fill_blanks_points(
        correct,
        len(question.blanks),
        state.streak,
        state.time_remaining,
        state.timer.enabled,
    )
    attempt = FillBlanksAttempt(question=question, results=results, points=points, time_expired=time_expired)
    return _record(state, attempt, attempt.overall_correct)


def _submit_explanation(state: QuizSessionState, selected_index: int, explanation: str) -> QuizSessionState:
    if not state.accepting_input:
        return state
    question = state.current_question
    if not isinstance(question, ChoiceQuestion) or question.mode is not QuizModeType.EXPLAIN:
        raise ValueError("The current question is not an explain-mode question.")
    _check_index(question, selected_index)
    if selected_index == TIME_EXPIRED_INDEX:
        return _record_explanation(state, question, selected_index, explanation, expired_evaluation(), 0)
    pending = PendingExplanation(
        selected_index=selected_index,
        explanation=explanation,
        time_remaining=state.time_remaining,
    )
    return replace(state, phase=QuestionPhase.EVALUATING, pending=pending)


def _apply_grade(state: QuizSessionState, event: ReasoningGraded) -> QuizSessionState:
    # Results for an earlier session or question arrive late; drop them.
    if (
        event.session_id != state.session_id
        or event.question_index != state.current_index
        or state.phase is not QuestionPhase.EVALUATING
        or state.pending is None
    ):
        return state
    question = state.current_question
    if not isinstance(question, ChoiceQuestion):
        return state
    pending = state.pending
    return _record_explanation(
        state,
        question,
        pending.selected_index,
        pending.explanation,
        event.evaluation,
        pending.time_remaining,
    )


def _record_explanation(
    state: QuizSessionState,
    question: ChoiceQuestion,
    selected_index: int,
    explanation: str,
    evaluation: ReasoningEvaluation,
    time_remaining: int,
) -> QuizSessionState:
    answer_correct = match_choice(question, selected_index)
    points = explain_points(
        answer_correct,
        evaluation.score,
        state.streak,
        time_remaining,
        state.timer.enabled,
    )
    attempt = ExplainAttempt(
        question=question,
        selected_index=selected_index,
        answer_correct=answer_correct,
        user_explanation=explanation,
        reasoning=evaluation,
        points=points,
    )
    return _record(state, attempt, answer_correct)
