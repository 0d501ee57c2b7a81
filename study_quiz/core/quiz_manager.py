"""Business logic for running a quiz session shared between a host UI and the API."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from uuid import uuid4

from study_quiz.constants.quiz_constants import (
    DEFAULT_MULTIPLAYER_TITLE,
    GENERATION_EMPTY_MESSAGE,
    MAX_SOURCE_TEXT_LENGTH,
    MIN_SOURCE_TEXT_LENGTH,
)
from study_quiz.core.adaptive import AdaptiveController
from study_quiz.core.errors import GenerationEmpty, QuizEngineError, SessionNotActive
from study_quiz.core.facade import QuizBackend, ReportAdvisor
from study_quiz.core.models import (
    Answer,
    AnswerInput,
    AttemptedQuestion,
    ChoiceAttempt,
    ChoiceQuestion,
    Difficulty,
    ExplainAttempt,
    ExplainResponse,
    FillBlanksAttempt,
    FillBlanksQuestion,
    MultiplayerQuizSession,
    Participant,
    Question,
    QuizModeType,
    SessionStatus,
    SwipeAttempt,
    TimerConfig,
)
from study_quiz.core.reasoning import evaluate_with_fallback
from study_quiz.core.report import build_quiz_report
from study_quiz.core.services.lobby_manager import MultiplayerCoordinator
from study_quiz.core.services.quiz_repository import QuestionBank
from study_quiz.core.services.scoreboard import LeaderboardRow
from study_quiz.core.session_state import (
    Advance,
    BeginPlay,
    ContinuationFailed,
    Finish,
    QuestionPhase,
    QuizSessionState,
    ReasoningGraded,
    ReportReady,
    Reset,
    SessionEvent,
    StartSession,
    SubmitBlanks,
    SubmitChoice,
    SubmitExplanation,
    Tick,
    View,
    transition,
)

logger = logging.getLogger(__name__)


def prepare_source_text(source_text: str) -> str:
    """Trim study material and cap it at the length the generator accepts."""
    cleaned = (source_text or "").strip()
    if len(cleaned) < MIN_SOURCE_TEXT_LENGTH:
        raise ValueError(f"Please provide at least {MIN_SOURCE_TEXT_LENGTH} characters of study material.")
    return cleaned[:MAX_SOURCE_TEXT_LENGTH]


def attempt_response(attempt: AttemptedQuestion) -> AnswerInput:
    """The raw input an attempt was graded from, as stored in a multiplayer answer."""
    match attempt:
        case ChoiceAttempt(selected_index=index) | SwipeAttempt(selected_index=index):
            return index
        case FillBlanksAttempt(results=results):
            return tuple(result.user_answer for result in results)
        case ExplainAttempt(selected_index=index, user_explanation=explanation):
            return ExplainResponse(selected_index=index, explanation=explanation)
    raise TypeError(f"Unknown attempt type {type(attempt).__name__}")


async def generate_batch(
    backend: QuizBackend,
    source_text: str,
    mode: QuizModeType,
    difficulty: Difficulty,
) -> list[Question]:
    """Ask ``backend`` for a first batch; any failure becomes :class:`GenerationEmpty`."""
    try:
        questions = await backend.generate_questions(source_text, mode, difficulty)
    except GenerationEmpty:
        raise
    except Exception as exc:
        logger.exception("Question generation failed for %s mode", mode.value)
        raise GenerationEmpty(GENERATION_EMPTY_MESSAGE) from exc
    if not questions:
        raise GenerationEmpty(GENERATION_EMPTY_MESSAGE)
    return list(questions)


class QuizManager:
    """Facade over the session state machine, the question bank and the backend.

    Holds the current :class:`QuizSessionState` and turns calls into events.
    When linked to a multiplayer session, every recorded attempt is also
    pushed to the coordinator as an :class:`Answer`.
    """

    def __init__(
        self,
        backend: QuizBackend,
        advisor: ReportAdvisor | None = None,
        coordinator: MultiplayerCoordinator | None = None,
    ) -> None:
        self._backend = backend
        self._advisor = advisor
        self._coordinator = coordinator
        self._bank = QuestionBank()
        self._adaptive = AdaptiveController(backend, self._bank)
        self._state = QuizSessionState()
        self._source_text = ""
        self._multiplayer_session_id: str | None = None
        self._participant_id: str | None = None

    @property
    def state(self) -> QuizSessionState:
        return self._state

    @property
    def multiplayer_session_id(self) -> str | None:
        return self._multiplayer_session_id

    @property
    def is_host(self) -> bool:
        if self._multiplayer_session_id is None or self._coordinator is None:
            return False
        session = self._coordinator.get_session(self._multiplayer_session_id)
        return session.host_id == self._participant_id

    # --- Singleplayer lifecycle ---

    def start_session(
        self,
        questions: Sequence[Question],
        mode: QuizModeType,
        timer_config: TimerConfig | None = None,
        *,
        source_text: str = "",
        difficulty: Difficulty = Difficulty.MEDIUM,
    ) -> QuizSessionState:
        """Validate ``questions`` and enter the playing view."""
        self._require_setup()
        accepted = self._bank.load_questions(questions, mode)
        self._source_text = source_text
        self._apply(
            StartSession(
                session_id=uuid4().hex,
                questions=tuple(accepted),
                mode=mode,
                timer=timer_config or TimerConfig.for_mode(mode),
                difficulty=difficulty,
            )
        )
        logger.info(
            "Started %s session %s with %d question(s) at %s",
            mode.value,
            self._state.session_id,
            len(accepted),
            difficulty.value,
        )
        return self._state

    async def generate_and_start(
        self,
        source_text: str,
        mode: QuizModeType,
        difficulty: Difficulty = Difficulty.MEDIUM,
        timer_config: TimerConfig | None = None,
    ) -> QuizSessionState:
        self._require_setup()
        text = prepare_source_text(source_text)
        questions = await generate_batch(self._backend, text, mode, difficulty)
        return self.start_session(questions, mode, timer_config, source_text=text, difficulty=difficulty)

    async def submit_answer(self, response: AnswerInput | Mapping[str, str]) -> QuizSessionState:
        """Grade ``response`` for the current question.

        Ignored (state returned unchanged) when the question was already
        answered, is being evaluated, or no question is showing.
        """
        state = self._state
        if not state.accepting_input:
            logger.debug("Ignoring answer for session %s: question not accepting input", state.session_id)
            return state
        question = state.current_question
        match question:
            case FillBlanksQuestion():
                if isinstance(response, (int, ExplainResponse)):
                    raise ValueError("Fill-in-the-blank questions take one response per blank.")
                responses = response if isinstance(response, Mapping) else tuple(response)
                self._apply(SubmitBlanks(responses=responses))
            case ChoiceQuestion(mode=QuizModeType.EXPLAIN):
                if not isinstance(response, ExplainResponse):
                    raise ValueError("Explain questions take a selected option and an explanation.")
                await self._submit_explanation(question, response)
            case _:
                if not isinstance(response, int) or isinstance(response, bool):
                    raise ValueError("This question takes a selected option index.")
                self._apply(SubmitChoice(selected_index=response))
        return self._state

    def tick(self) -> QuizSessionState:
        """Advance the question clock by one second."""
        return self._apply(Tick())

    def advance(self) -> QuizSessionState:
        return self._apply(Advance())

    async def continue_adaptive(self) -> QuizSessionState:
        """At the end of a batch, fetch the next one or end the session."""
        state = self._state
        if not state.at_end_of_batch:
            return state
        if state.multiplayer:
            # Everyone in a multiplayer session plays the same fixed question list.
            return await self.finish()
        event = await self._adaptive.continue_session(state, self._source_text)
        self._apply(event)
        if isinstance(event, ContinuationFailed):
            await self._build_report()
        return self._state

    async def finish(self) -> QuizSessionState:
        if self._state.view is not View.PLAYING:
            return self._state
        self._apply(Finish())
        await self._build_report()
        return self._state

    def reset(self) -> QuizSessionState:
        self._bank.clear()
        self._source_text = ""
        self._multiplayer_session_id = None
        self._participant_id = None
        return self._apply(Reset())

    # --- Multiplayer ---

    async def create_multiplayer_session(
        self,
        host: Participant,
        source_text: str,
        mode: QuizModeType,
        difficulty: Difficulty = Difficulty.MEDIUM,
        *,
        title: str = DEFAULT_MULTIPLAYER_TITLE,
        timer_config: TimerConfig | None = None,
    ) -> MultiplayerQuizSession:
        """Generate questions, open a waiting room and wait in it as the host."""
        coordinator = self._require_coordinator()
        self._require_setup()
        text = prepare_source_text(source_text)
        generated = await generate_batch(self._backend, text, mode, difficulty)
        questions = self._bank.load_questions(generated, mode)
        timer = timer_config or TimerConfig.for_mode(mode)
        session = coordinator.create_session(
            host,
            questions,
            mode=mode,
            difficulty=difficulty,
            title=title,
            timer=timer,
        )
        self._link(session, host.id, source_text=text)
        return session

    def join_multiplayer_session(self, code: str, participant: Participant) -> MultiplayerQuizSession:
        coordinator = self._require_coordinator()
        self._require_setup()
        session = coordinator.join_by_code(code, participant)
        self._bank.load_questions(session.questions, session.mode)
        self._link(session, participant.id)
        return session

    def begin_multiplayer(self) -> QuizSessionState:
        """Move from the waiting room into play.

        The host starts the shared session; other participants follow once
        it is active.
        """
        coordinator = self._require_coordinator()
        session_id = self._require_link()
        session = coordinator.get_session(session_id)
        if session.status is SessionStatus.WAITING and session.host_id == self._participant_id:
            coordinator.start_session(session_id, self._participant_id)
        if session.status is not SessionStatus.ACTIVE:
            raise SessionNotActive("Waiting for the host to start the quiz.")
        return self._apply(BeginPlay())

    def submit_multiplayer_answer(self, question_index: int, attempt: AttemptedQuestion) -> bool:
        """Push one recorded attempt to the shared session. False for duplicates."""
        coordinator = self._require_coordinator()
        session_id = self._require_link()
        answer = Answer(
            question_index=question_index,
            response=attempt_response(attempt),
            is_correct=attempt.is_correct,
            points=attempt.points,
            time_spent=float(self._state.elapsed_seconds),
        )
        return coordinator.submit_answer(session_id, self._participant_id, answer)

    def complete_multiplayer_session(self) -> list[LeaderboardRow]:
        """Close the shared session (host) or read its leaderboard (others)."""
        coordinator = self._require_coordinator()
        session_id = self._require_link()
        if self.is_host:
            return coordinator.complete_session(session_id, self._participant_id)
        return coordinator.leaderboard(session_id)

    # --- Helpers ---

    def _apply(self, event: SessionEvent) -> QuizSessionState:
        before = self._state
        self._state = transition(before, event)
        if self._multiplayer_session_id is not None and len(self._state.attempts) > len(before.attempts):
            attempt = self._state.attempts[-1]
            try:
                accepted = self.submit_multiplayer_answer(self._state.current_index, attempt)
            except QuizEngineError as exc:
                logger.warning("Could not share answer for question %d: %s", self._state.current_index, exc)
            else:
                if not accepted:
                    logger.debug("Shared session already had an answer for question %d", self._state.current_index)
        return self._state

    async def _submit_explanation(self, question: ChoiceQuestion, response: ExplainResponse) -> None:
        self._apply(SubmitExplanation(selected_index=response.selected_index, explanation=response.explanation))
        state = self._state
        if state.phase is not QuestionPhase.EVALUATING:
            return
        evaluation = await evaluate_with_fallback(
            self._backend,
            question,
            response.selected_index,
            response.explanation,
        )
        # The session may have been reset or moved on while grading; stale results are dropped.
        self._apply(
            ReasoningGraded(
                session_id=state.session_id,
                question_index=state.current_index,
                evaluation=evaluation,
            )
        )

    async def _build_report(self) -> None:
        state = self._state
        if state.view not in (View.RESULTS, View.LEADERBOARD):
            return
        report = await build_quiz_report(state.attempts, state.score, self._advisor, state.notice)
        self._apply(ReportReady(session_id=state.session_id, report=report))
        if state.multiplayer and self.is_host:
            self.complete_multiplayer_session()
        logger.info(
            "Session %s finished with score %d (%d%% accuracy)",
            state.session_id,
            report.score,
            report.overall_accuracy,
        )

    def _link(self, session: MultiplayerQuizSession, participant_id: str, source_text: str = "") -> None:
        self._apply(
            StartSession(
                session_id=session.id,
                questions=tuple(session.questions),
                mode=session.mode,
                timer=session.timer_config(),
                difficulty=session.difficulty,
                multiplayer=True,
                wait_for_host=session.status is SessionStatus.WAITING,
            )
        )
        self._multiplayer_session_id = session.id
        self._participant_id = participant_id
        self._source_text = source_text

    def _require_setup(self) -> None:
        if self._state.view is not View.SETUP:
            raise RuntimeError("A quiz session is already running; reset it first.")

    def _require_coordinator(self) -> MultiplayerCoordinator:
        if self._coordinator is None:
            raise RuntimeError("This quiz manager has no multiplayer coordinator.")
        return self._coordinator

    def _require_link(self) -> str:
        if self._multiplayer_session_id is None:
            raise RuntimeError("Not part of a multiplayer session.")
        return self._multiplayer_session_id
