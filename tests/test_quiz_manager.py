import asyncio

import pytest

from study_quiz.constants.quiz_constants import GENERATION_EMPTY_MESSAGE
from study_quiz.core.errors import GenerationEmpty, SessionNotActive
from study_quiz.core.models import (
    Difficulty,
    ExplainResponse,
    Participant,
    QuizModeType,
    ReasoningEvaluation,
    SessionStatus,
    TimerConfig,
)
from study_quiz.core.quiz_manager import QuizManager, prepare_source_text
from study_quiz.core.services.lobby_manager import MultiplayerCoordinator
from study_quiz.core.session_state import QuestionPhase, View
from tests.fakes import STUDY_TEXT, FakeBackend, choice, fill

NO_TIMER = TimerConfig(enabled=False, duration_seconds=30)


def test_source_text_is_validated_and_truncated():
    with pytest.raises(ValueError):
        prepare_source_text("too short")
    assert len(prepare_source_text("x" * 20000)) == 15000


def test_generate_and_start_with_empty_batch_fails():
    manager = QuizManager(FakeBackend(batches=[[]]))
    with pytest.raises(GenerationEmpty):
        asyncio.run(manager.generate_and_start(STUDY_TEXT, QuizModeType.STANDARD))
    assert manager.state.view is View.SETUP


def test_invalid_generated_questions_are_dropped():
    broken = choice("bad", correct_index=7)
    manager = QuizManager(FakeBackend())
    state = manager.start_session([broken, choice("ok")], QuizModeType.STANDARD, NO_TIMER)
    assert [q.id for q in state.questions] == ["ok"]


def test_full_adaptive_session_escalates_then_ends_on_empty_continuation():
    first_batch = [choice(f"q{i}") for i in range(5)]
    harder = [choice("h1", difficulty=Difficulty.HARD)]
    backend = FakeBackend(batches=[first_batch, harder, []])
    manager = QuizManager(backend)

    async def play():
        await manager.generate_and_start(STUDY_TEXT, QuizModeType.STANDARD, Difficulty.MEDIUM, NO_TIMER)
        for picked in [1, 1, 1, 1, 0]:
            await manager.submit_answer(picked)
            manager.advance()
        state = await manager.continue_adaptive()
        assert state.difficulty is Difficulty.HARD
        assert state.current_question.id == "h1"
        await manager.submit_answer(1)
        return await manager.continue_adaptive()

    state = asyncio.run(play())
    assert backend.generate_calls[1] == (QuizModeType.STANDARD, Difficulty.HARD)
    assert state.view is View.RESULTS
    assert state.notice == GENERATION_EMPTY_MESSAGE
    assert state.score == 560
    assert state.streak == 1
    assert state.report is not None
    assert state.report.notice == GENERATION_EMPTY_MESSAGE
    assert state.report.total_questions == 6


def test_duplicate_submission_is_ignored():
    manager = QuizManager(FakeBackend())
    manager.start_session([choice("q1")], QuizModeType.STANDARD, NO_TIMER)
    first = asyncio.run(manager.submit_answer(1))
    second = asyncio.run(manager.submit_answer(0))
    assert second is first
    assert len(second.attempts) == 1


def test_explain_answer_is_graded_through_backend():
    backend = FakeBackend(evaluation=ReasoningEvaluation(score=4, feedback="Solid"))
    manager = QuizManager(backend)
    manager.start_session([choice("e1", mode=QuizModeType.EXPLAIN)], QuizModeType.EXPLAIN, NO_TIMER)
    state = asyncio.run(manager.submit_answer(ExplainResponse(selected_index=0, explanation="Because")))
    assert state.phase is QuestionPhase.ANSWERED
    assert state.last_attempt.reasoning.feedback == "Solid"
    assert state.score == 40


def test_explain_answer_survives_grader_failure():
    manager = QuizManager(FakeBackend(evaluation_error=TimeoutError()))
    manager.start_session([choice("e1", mode=QuizModeType.EXPLAIN)], QuizModeType.EXPLAIN, NO_TIMER)
    state = asyncio.run(manager.submit_answer(ExplainResponse(selected_index=1, explanation="Because")))
    assert state.last_attempt.reasoning.is_fallback
    assert state.score == 50 + 30


def test_fill_blanks_accepts_mapping():
    manager = QuizManager(FakeBackend())
    manager.start_session([fill("f1")], QuizModeType.FILL_BLANKS, NO_TIMER)
    state = asyncio.run(manager.submit_answer({"blank-0": "photosynthesis", "blank-1": "chlorophyll"}))
    assert state.score == 90


def test_reset_returns_to_setup():
    manager = QuizManager(FakeBackend())
    manager.start_session([choice("q1")], QuizModeType.STANDARD)
    assert manager.reset().view is View.SETUP


def test_multiplayer_flow_shares_answers_and_ranks_players():
    coordinator = MultiplayerCoordinator()
    backend = FakeBackend(batches=[[choice("q1"), choice("q2")]])
    host = QuizManager(backend, coordinator=coordinator)
    guest = QuizManager(backend, coordinator=coordinator)

    async def play():
        session = await host.create_multiplayer_session(
            Participant(id="host", display_name="Host"),
            STUDY_TEXT,
            QuizModeType.STANDARD,
            timer_config=NO_TIMER,
        )
        assert host.state.view is View.WAITING
        guest.join_multiplayer_session(session.invite_code, Participant(id="guest", display_name="Guest"))
        with pytest.raises(SessionNotActive):
            guest.begin_multiplayer()
        host.begin_multiplayer()
        guest.begin_multiplayer()

        for manager, picks in ((host, [1, 0]), (guest, [1, 1])):
            for pick in picks:
                manager.tick()
                await manager.submit_answer(pick)
                manager.advance()
        await guest.continue_adaptive()
        await host.continue_adaptive()
        return session

    session = asyncio.run(play())
    assert session.status is SessionStatus.COMPLETED
    assert host.state.view is View.LEADERBOARD
    rows = guest.complete_multiplayer_session()
    assert [row.participant_id for row in rows] == ["guest", "host"]
    assert rows[0].score == 210
    assert rows[0].total_time == 2.0


def test_restart_while_playing_is_rejected_without_touching_the_bank():
    backend = FakeBackend(batches=[[choice("b"), choice("c")]])
    manager = QuizManager(backend)
    manager.start_session([choice("a"), choice("b")], QuizModeType.STANDARD, NO_TIMER, source_text=STUDY_TEXT)
    with pytest.raises(RuntimeError):
        manager.start_session([choice("z")], QuizModeType.STANDARD, NO_TIMER)

    async def play():
        for _ in range(2):
            await manager.submit_answer(1)
            manager.advance()
        return await manager.continue_adaptive()

    state = asyncio.run(play())
    ids = [q.id for q in state.questions]
    assert len(ids) == 4
    assert len(set(ids)) == 4
    assert ids[:2] == ["a", "b"]
    assert "z" not in ids


def test_multiplayer_room_is_not_opened_while_playing():
    coordinator = MultiplayerCoordinator()
    backend = FakeBackend(batches=[[choice("m1")]])
    manager = QuizManager(backend, coordinator=coordinator)
    manager.start_session([choice("q1")], QuizModeType.STANDARD, NO_TIMER)
    with pytest.raises(RuntimeError):
        asyncio.run(
            manager.create_multiplayer_session(
                Participant(id="host", display_name="Host"), STUDY_TEXT, QuizModeType.STANDARD
            )
        )
    assert backend.generate_calls == []
    assert manager.multiplayer_session_id is None
    assert manager.state.multiplayer is False
    assert [q.id for q in manager.state.questions] == ["q1"]


def test_joining_while_playing_leaves_the_room_unchanged():
    coordinator = MultiplayerCoordinator()
    host = QuizManager(FakeBackend(batches=[[choice("m1")]]), coordinator=coordinator)
    session = asyncio.run(
        host.create_multiplayer_session(
            Participant(id="host", display_name="Host"), STUDY_TEXT, QuizModeType.STANDARD, timer_config=NO_TIMER
        )
    )
    busy = QuizManager(FakeBackend(), coordinator=coordinator)
    busy.start_session([choice("q1")], QuizModeType.STANDARD, NO_TIMER)
    with pytest.raises(RuntimeError):
        busy.join_multiplayer_session(session.invite_code, Participant(id="late", display_name="Late"))
    assert session.get_participant("late") is None
    assert busy.multiplayer_session_id is None
