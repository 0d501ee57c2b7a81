"""Service for multiplayer sessions: invite codes, membership and answer logs."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
import logging
import random
from uuid import uuid4

from study_quiz.constants.quiz_constants import (
    DEFAULT_MULTIPLAYER_TITLE,
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    INVITE_CODE_MAX_ATTEMPTS,
    MIN_PARTICIPANTS_TO_START,
)
from study_quiz.core.errors import (
    GenerationEmpty,
    InvalidJoinCode,
    NotEnoughParticipants,
    NotSessionHost,
    SessionNotActive,
    SessionNotFound,
)
from study_quiz.core.models import (
    Answer,
    Difficulty,
    MultiplayerQuizSession,
    Participant,
    Question,
    QuizModeType,
    SessionStatus,
    TimerConfig,
    utc_now,
)
from study_quiz.core.services.scoreboard import LeaderboardRow, derive_leaderboard

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


class MultiplayerCoordinator:
    """Creates, joins, runs and completes multiplayer sessions.

    Participants only ever append to their own answer list, so concurrent
    submissions for the same question never touch the same data. Status moves
    forward only and is changed by the host or the coordinator itself.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._sessions: dict[str, MultiplayerQuizSession] = {}
        self._open_codes: dict[str, str] = {}

    # --- Lookup ---

    def get_session(self, session_id: str) -> MultiplayerQuizSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"No quiz session with id {session_id!r}.")
        return session

    def find_by_code(self, code: str) -> MultiplayerQuizSession | None:
        session_id = self._open_codes.get(normalize_code(code))
        return self._sessions.get(session_id) if session_id else None

    # --- Lifecycle ---

    def create_session(
        self,
        host: Participant,
        questions: Iterable[Question],
        *,
        mode: QuizModeType,
        difficulty: Difficulty = Difficulty.MEDIUM,
        title: str = DEFAULT_MULTIPLAYER_TITLE,
        timer: TimerConfig | None = None,
    ) -> MultiplayerQuizSession:
        """Open a new waiting room with the host enrolled and ready."""
        question_list = list(questions)
        if not question_list:
            raise GenerationEmpty("Cannot create a quiz session without questions.")
        host.is_ready = True
        session = MultiplayerQuizSession(
            id=f"quiz_{uuid4().hex}",
            invite_code=self._generate_invite_code(),
            host_id=host.id,
            host_name=host.display_name,
            mode=mode,
            difficulty=difficulty,
            questions=question_list,
            title=title,
            timer=timer,
            participants=[host],
            created_at=self._clock(),
        )
        self._sessions[session.id] = session
        self._open_codes[session.invite_code] = session.id
        logger.info("Created quiz session %s with code %s", session.id, session.invite_code)
        return session

    def join_by_code(self, code: str, participant: Participant) -> MultiplayerQuizSession:
        """Enroll ``participant``; joining twice returns the session unchanged."""
        normalized = normalize_code(code)
        session = self.find_by_code(normalized)
        if session is None:
            raise InvalidJoinCode(normalized, "Invalid quiz code.")
        if session.get_participant(participant.id) is not None:
            return session
        if session.status is not SessionStatus.WAITING:
            raise InvalidJoinCode(normalized, "Quiz already started.")
        session.participants.append(participant)
        self._touch(session)
        logger.info("Participant %s joined session %s", participant.id, session.id)
        return session

    def start_session(self, session_id: str, requester_id: str) -> MultiplayerQuizSession:
        session = self.get_session(session_id)
        if requester_id != session.host_id:
            raise NotSessionHost("Only the host can start the quiz.")
        if session.status is not SessionStatus.WAITING:
            raise SessionNotActive(f"Session is already {session.status.value}.")
        if len(session.participants) < MIN_PARTICIPANTS_TO_START:
            raise NotEnoughParticipants(
                f"Need at least {MIN_PARTICIPANTS_TO_START} participants to start the quiz."
            )
        session.status = SessionStatus.ACTIVE
        session.started_at = self._clock()
        self._touch(session)
        logger.info("Session %s started with %d participants", session.id, len(session.participants))
        return session

    def submit_answer(self, session_id: str, participant_id: str, answer: Answer) -> bool:
        """Append ``answer`` to the participant's log.

        Returns False (and changes nothing) when that question was already
        answered by this participant.
        """
        session = self.get_session(session_id)
        if session.status is not SessionStatus.ACTIVE:
            raise SessionNotActive("Answers are only accepted while the quiz is running.")
        participant = session.get_participant(participant_id)
        if participant is None:
            raise SessionNotFound(f"Participant {participant_id!r} is not part of this session.")
        if not 0 <= answer.question_index < len(session.questions):
            raise ValueError(f"Question index {answer.question_index} out of range")
        if participant.has_answered(answer.question_index):
            logger.debug(
                "Ignoring duplicate answer from %s for question %d",
                participant_id,
                answer.question_index,
            )
            return False
        participant.answers.append(answer)
        self._touch(session)
        return True

    def complete_session(self, session_id: str, requester_id: str | None = None) -> list[LeaderboardRow]:
        """Close the session for good and return its leaderboard."""
        session = self.get_session(session_id)
        if requester_id is not None and requester_id != session.host_id:
            raise NotSessionHost("Only the host can end the quiz.")
        if session.status.can_move_to(SessionStatus.COMPLETED):
            session.status = SessionStatus.COMPLETED
            session.completed_at = self._clock()
            self._open_codes.pop(session.invite_code, None)
            self._touch(session)
            logger.info("Session %s completed", session.id)
        return self.leaderboard(session_id)

    def leaderboard(self, session_id: str, limit: int | None = None) -> list[LeaderboardRow]:
        session = self.get_session(session_id)
        return derive_leaderboard(
            session.participants,
            mode=session.mode,
            question_count=len(session.questions),
            limit=limit,
        )

    # --- Helpers ---

    def _generate_invite_code(self) -> str:
        for _ in range(INVITE_CODE_MAX_ATTEMPTS):
            code = "".join(self._rng.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
            if code not in self._open_codes:
                return code
        raise RuntimeError("Could not allocate a unique invite code.")

    @staticmethod
    def _touch(session: MultiplayerQuizSession) -> None:
        session.version += 1
