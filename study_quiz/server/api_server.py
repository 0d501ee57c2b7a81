"""FastAPI server that exposes multiplayer quiz sessions to remote participants."""

from __future__ import annotations

from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
import uvicorn

from study_quiz.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from study_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from study_quiz.constants.quiz_constants import DEFAULT_MULTIPLAYER_TITLE
from study_quiz.core.errors import (
    GenerationEmpty,
    InvalidJoinCode,
    NotEnoughParticipants,
    NotSessionHost,
    QuizEngineError,
    SessionNotActive,
    SessionNotFound,
)
from study_quiz.core.facade import QuizBackend
from study_quiz.core.markdown_math_renderer import renderer
from study_quiz.core.models import (
    ChoiceQuestion,
    Difficulty,
    ExplainResponse,
    FillBlanksQuestion,
    MultiplayerQuizSession,
    Participant,
    Question,
    QuizModeType,
    SessionStatus,
    TimerConfig,
)
from study_quiz.core.name_assigner import NameAssigner
from study_quiz.core.quiz_manager import generate_batch, prepare_source_text
from study_quiz.core.services.answer_grader import grade_remote_answer, participant_streak
from study_quiz.core.services.lobby_manager import MultiplayerCoordinator
from study_quiz.core.services.quiz_repository import QuestionBank
from study_quiz.core.services.scoreboard import LeaderboardRow

_ERROR_STATUS: dict[type[QuizEngineError], int] = {
    GenerationEmpty: 422,
    InvalidJoinCode: 404,
    SessionNotFound: 404,
    NotSessionHost: 403,
    SessionNotActive: 409,
    NotEnoughParticipants: 409,
}


class CreateSessionPayload(BaseModel):
    """Payload schema for opening a multiplayer session from study text."""

    host_id: str = Field(min_length=1)
    host_name: str | None = None
    source_text: str
    mode: QuizModeType = QuizModeType.STANDARD
    difficulty: Difficulty = Difficulty.MEDIUM
    title: str | None = None
    timer_enabled: bool | None = None
    timer_seconds: int | None = Field(default=None, ge=1)


class JoinPayload(BaseModel):
    """Payload schema for joining by invite code."""

    code: str
    participant_id: str = Field(min_length=1)
    display_name: str | None = None


class RequesterPayload(BaseModel):
    requester_id: str


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers; which fields are needed depends on the mode."""

    participant_id: str
    question_index: int
    selected_index: int | None = None
    responses: list[str] | dict[str, str] | None = None
    explanation: str | None = None
    time_spent: float = Field(default=0.0, ge=0.0)


def _http_error(exc: QuizEngineError) -> HTTPException:
    status = next((code for kind, code in _ERROR_STATUS.items() if isinstance(exc, kind)), 400)
    return HTTPException(status_code=status, detail=str(exc))


def _timer_for(payload: CreateSessionPayload) -> TimerConfig:
    default = TimerConfig.for_mode(payload.mode)
    return TimerConfig(
        enabled=default.enabled if payload.timer_enabled is None else payload.timer_enabled,
        duration_seconds=payload.timer_seconds or default.duration_seconds,
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _session_summary(session: MultiplayerQuizSession) -> dict[str, object]:
    timer = session.timer_config()
    return {
        "session_id": session.id,
        "invite_code": session.invite_code,
        "title": session.title,
        "host_id": session.host_id,
        "host_name": session.host_name,
        "mode": session.mode.value,
        "difficulty": session.difficulty.value,
        "status": session.status.value,
        "version": session.version,
        "question_count": len(session.questions),
        "timer": {"enabled": timer.enabled, "duration_seconds": timer.duration_seconds},
        "participants": [
            {
                "participant_id": participant.id,
                "display_name": participant.display_name,
                "is_ready": participant.is_ready,
                "answered": len(participant.answers),
                "joined_at": _iso(participant.joined_at),
            }
            for participant in session.participants
        ],
        "created_at": _iso(session.created_at),
        "started_at": _iso(session.started_at),
        "completed_at": _iso(session.completed_at),
    }


def _question_payload(question: Question, index: int, reveal: bool) -> dict[str, object]:
    payload: dict[str, object] = {
        "question_index": index,
        "question_id": question.id,
        "mode": question.mode.value,
        "difficulty": question.difficulty.value,
    }
    if isinstance(question, FillBlanksQuestion):
        payload["question_html"] = renderer.render_with_blanks(question.text_with_blanks)
        payload["blank_ids"] = [blank.id for blank in question.blanks]
        payload["options"] = []
    else:
        payload["question_html"] = renderer.render_fragment(question.prompt_text)
        payload["options"] = [renderer.render_inline(option) for option in question.options]
    # Answers stay hidden until the session is over.
    if reveal:
        payload["explanation_html"] = renderer.render_fragment(question.explanation_text)
        if isinstance(question, FillBlanksQuestion):
            payload["accepted_answers"] = {blank.id: list(blank.accepted_answers) for blank in question.blanks}
        else:
            payload["correct_index"] = question.correct_index
    return payload


def _leaderboard_payload(rows: list[LeaderboardRow]) -> list[dict[str, object]]:
    return [
        {
            "rank": row.rank,
            "participant_id": row.participant_id,
            "display_name": row.display_name,
            "score": row.score,
            "correct_answers": row.correct_answers,
            "total_questions": row.total_questions,
            "total_time": row.total_time,
            "average_time": row.average_time,
        }
        for row in rows
    ]


def _answer_response(question: Question, payload: AnswerPayload) -> int | list[str] | dict[str, str] | ExplainResponse:
    if isinstance(question, FillBlanksQuestion):
        if payload.responses is None:
            raise ValueError("Fill-in-the-blank answers need 'responses'.")
        return payload.responses
    if payload.selected_index is None:
        raise ValueError("This question needs 'selected_index'.")
    if isinstance(question, ChoiceQuestion) and question.mode is QuizModeType.EXPLAIN:
        return ExplainResponse(selected_index=payload.selected_index, explanation=payload.explanation or "")
    return payload.selected_index


def _get_dependency(value):
    def dependency():
        return value

    return dependency


def create_api_app(coordinator: MultiplayerCoordinator, backend: QuizBackend) -> FastAPI:
    """Create a FastAPI application wired to the provided coordinator and backend."""
    app = FastAPI(title=f"{APP_NAME} API", description=APP_ABOUT_TEXT, version=APP_VERSION)
    coordinator_dep = _get_dependency(coordinator)
    backend_dep = _get_dependency(backend)
    name_assigner = NameAssigner()

    @app.post("/sessions", status_code=201)
    async def create_session(
        payload: CreateSessionPayload,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
        generator: QuizBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        try:
            text = prepare_source_text(payload.source_text)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        try:
            generated = await generate_batch(generator, text, payload.mode, payload.difficulty)
            questions = QuestionBank().load_questions(generated, payload.mode)
        except GenerationEmpty as exc:
            raise _http_error(exc) from exc
        host = Participant(
            id=payload.host_id,
            display_name=(payload.host_name or "").strip() or name_assigner.next_name(),
        )
        session = sessions.create_session(
            host,
            questions,
            mode=payload.mode,
            difficulty=payload.difficulty,
            title=(payload.title or "").strip() or DEFAULT_MULTIPLAYER_TITLE,
            timer=_timer_for(payload),
        )
        return _session_summary(session)

    @app.post("/sessions/join")
    async def join_session(
        payload: JoinPayload,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
    ) -> dict[str, object]:
        chosen_name = (payload.display_name or "").strip() or name_assigner.next_name()
        participant = Participant(id=payload.participant_id, display_name=chosen_name)
        try:
            session = sessions.join_by_code(payload.code, participant)
        except InvalidJoinCode as exc:
            raise _http_error(exc) from exc
        joined = session.get_participant(payload.participant_id) or participant
        summary = _session_summary(session)
        summary["participant"] = {"participant_id": joined.id, "display_name": joined.display_name}
        return summary

    @app.post("/sessions/{session_id}/start")
    async def start_session(
        session_id: str,
        payload: RequesterPayload,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
    ) -> dict[str, object]:
        try:
            session = sessions.start_session(session_id, payload.requester_id)
        except QuizEngineError as exc:
            raise _http_error(exc) from exc
        return _session_summary(session)

    @app.get("/sessions/{session_id}")
    async def get_session(
        session_id: str,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
    ) -> dict[str, object]:
        try:
            session = sessions.get_session(session_id)
        except SessionNotFound as exc:
            raise _http_error(exc) from exc
        return _session_summary(session)

    @app.get("/sessions/{session_id}/questions/{question_index}")
    async def get_question(
        session_id: str,
        question_index: int,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
    ) -> dict[str, object]:
        try:
            session = sessions.get_session(session_id)
        except SessionNotFound as exc:
            raise _http_error(exc) from exc
        if not 0 <= question_index < len(session.questions):
            raise HTTPException(status_code=404, detail=f"No question at index {question_index}.")
        reveal = session.status is SessionStatus.COMPLETED
        return _question_payload(session.questions[question_index], question_index, reveal)

    @app.post("/sessions/{session_id}/answers", status_code=201)
    async def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        response: Response,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
        grader: QuizBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        try:
            session = sessions.get_session(session_id)
        except SessionNotFound as exc:
            raise _http_error(exc) from exc
        if session.status is not SessionStatus.ACTIVE:
            raise HTTPException(status_code=409, detail="Answers are only accepted while the quiz is running.")
        participant = session.get_participant(payload.participant_id)
        if participant is None:
            raise HTTPException(status_code=404, detail="Participant is not part of this session.")
        if not 0 <= payload.question_index < len(session.questions):
            raise HTTPException(status_code=422, detail=f"Question index {payload.question_index} out of range.")

        if participant.has_answered(payload.question_index):
            response.status_code = 200
            return {"accepted": False, "question_index": payload.question_index, "score": participant.score}

        question = session.questions[payload.question_index]
        try:
            answer = await grade_remote_answer(
                question,
                payload.question_index,
                _answer_response(question, payload),
                streak=participant_streak(participant, before=payload.question_index),
                time_spent=payload.time_spent,
                timer=session.timer_config(),
                backend=grader,
            )
            accepted = sessions.submit_answer(session_id, participant.id, answer)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except QuizEngineError as exc:
            raise _http_error(exc) from exc

        if not accepted:
            response.status_code = 200
        return {
            "accepted": accepted,
            "question_index": payload.question_index,
            "is_correct": answer.is_correct,
            "points": answer.points,
            "score": participant.score,
        }

    @app.post("/sessions/{session_id}/complete")
    async def complete_session(
        session_id: str,
        payload: RequesterPayload,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
    ) -> dict[str, object]:
        try:
            rows = sessions.complete_session(session_id, payload.requester_id)
        except QuizEngineError as exc:
            raise _http_error(exc) from exc
        return {"session_id": session_id, "leaderboard": _leaderboard_payload(rows)}

    @app.get("/sessions/{session_id}/leaderboard")
    async def get_leaderboard(
        session_id: str,
        limit: int | None = None,
        sessions: MultiplayerCoordinator = Depends(coordinator_dep),
    ) -> dict[str, object]:
        try:
            rows = sessions.leaderboard(session_id, limit=limit)
        except SessionNotFound as exc:
            raise _http_error(exc) from exc
        return {"session_id": session_id, "leaderboard": _leaderboard_payload(rows)}

    return app


def run_api_server(
    coordinator: MultiplayerCoordinator,
    backend: QuizBackend,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(coordinator, backend)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
