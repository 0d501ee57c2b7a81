from datetime import datetime, timedelta, timezone
import random

import pytest

from study_quiz.core.errors import (
    GenerationEmpty,
    InvalidJoinCode,
    NotEnoughParticipants,
    NotSessionHost,
    SessionNotActive,
)
from study_quiz.core.models import Answer, Participant, QuizModeType, SessionStatus
from study_quiz.core.services.lobby_manager import MultiplayerCoordinator
from study_quiz.core.services.scoreboard import derive_leaderboard
from tests.fakes import choice, swipe

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_coordinator() -> MultiplayerCoordinator:
    return MultiplayerCoordinator(rng=random.Random(7), clock=lambda: T0)


def open_session(coordinator, mode=QuizModeType.STANDARD, questions=None):
    host = Participant(id="host", display_name="Host", joined_at=T0)
    return coordinator.create_session(host, questions or [choice("q1"), choice("q2")], mode=mode)


def answer(index, correct=True, points=100, time_spent=5.0):
    return Answer(question_index=index, response=1, is_correct=correct, points=points, time_spent=time_spent)


def test_create_session_enrolls_host_with_fresh_code():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    assert session.status is SessionStatus.WAITING
    assert [p.id for p in session.participants] == ["host"]
    assert session.participants[0].is_ready
    assert len(session.invite_code) == 6
    assert session.invite_code.isalnum() and session.invite_code.upper() == session.invite_code
    assert open_session(coordinator).invite_code != session.invite_code


def test_create_session_needs_questions():
    with pytest.raises(GenerationEmpty):
        make_coordinator().create_session(Participant(id="h", display_name="H"), [], mode=QuizModeType.STANDARD)


def test_unknown_code_is_rejected_without_mutation():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    version = session.version
    with pytest.raises(InvalidJoinCode) as excinfo:
        coordinator.join_by_code("ZZZZZZ", Participant(id="p1", display_name="P1"))
    assert excinfo.value.code == "ZZZZZZ"
    assert len(session.participants) == 1
    assert session.version == version


def test_join_normalizes_code_and_is_idempotent():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    code = f"  {session.invite_code.lower()} "
    coordinator.join_by_code(code, Participant(id="p1", display_name="P1"))
    again = coordinator.join_by_code(code, Participant(id="p1", display_name="Renamed"))
    assert again is session
    assert [p.id for p in session.participants] == ["host", "p1"]
    assert session.participants[1].display_name == "P1"


def test_start_rules():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    with pytest.raises(NotEnoughParticipants):
        coordinator.start_session(session.id, "host")
    coordinator.join_by_code(session.invite_code, Participant(id="p1", display_name="P1"))
    with pytest.raises(NotSessionHost):
        coordinator.start_session(session.id, "p1")
    coordinator.start_session(session.id, "host")
    assert session.status is SessionStatus.ACTIVE
    assert session.started_at == T0
    with pytest.raises(SessionNotActive):
        coordinator.start_session(session.id, "host")


def test_new_participants_cannot_join_a_started_session():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    coordinator.join_by_code(session.invite_code, Participant(id="p1", display_name="P1"))
    coordinator.start_session(session.id, "host")
    with pytest.raises(InvalidJoinCode):
        coordinator.join_by_code(session.invite_code, Participant(id="late", display_name="Late"))
    assert coordinator.join_by_code(session.invite_code, Participant(id="p1", display_name="P1")) is session


def test_answers_require_active_session_and_are_first_write_wins():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    coordinator.join_by_code(session.invite_code, Participant(id="p1", display_name="P1"))
    with pytest.raises(SessionNotActive):
        coordinator.submit_answer(session.id, "p1", answer(0))
    coordinator.start_session(session.id, "host")

    assert coordinator.submit_answer(session.id, "p1", answer(0, points=120))
    assert not coordinator.submit_answer(session.id, "p1", answer(0, points=999))
    participant = session.get_participant("p1")
    assert [a.points for a in participant.answers] == [120]
    with pytest.raises(ValueError):
        coordinator.submit_answer(session.id, "p1", answer(5))


def test_complete_is_one_way_and_frees_the_code():
    coordinator = make_coordinator()
    session = open_session(coordinator)
    coordinator.join_by_code(session.invite_code, Participant(id="p1", display_name="P1"))
    coordinator.start_session(session.id, "host")
    with pytest.raises(NotSessionHost):
        coordinator.complete_session(session.id, "p1")
    first = coordinator.complete_session(session.id, "host")
    second = coordinator.complete_session(session.id)
    assert session.status is SessionStatus.COMPLETED
    assert first == second
    assert coordinator.find_by_code(session.invite_code) is None
    with pytest.raises(SessionNotActive):
        coordinator.submit_answer(session.id, "p1", answer(1))


def test_leaderboard_orders_by_score_correct_then_time():
    fast = Participant(id="fast", display_name="Fast", joined_at=T0 + timedelta(seconds=2))
    slow = Participant(id="slow", display_name="Slow", joined_at=T0)
    top = Participant(id="top", display_name="Top", joined_at=T0 + timedelta(seconds=5))
    fast.answers.append(answer(0, points=100, time_spent=3))
    slow.answers.append(answer(0, points=100, time_spent=9))
    top.answers.append(answer(0, points=150, time_spent=20))
    rows = derive_leaderboard([slow, fast, top])
    assert [r.participant_id for r in rows] == ["top", "fast", "slow"]
    assert [r.rank for r in rows] == [1, 2, 3]
    assert rows[1].average_time == 3


def test_leaderboard_is_total_and_stable():
    tied = [Participant(id=pid, display_name=pid, joined_at=T0) for pid in ["b", "a", "c"]]
    first = derive_leaderboard(tied)
    second = derive_leaderboard(list(reversed(tied)))
    assert [r.participant_id for r in first] == ["a", "b", "c"]
    assert first == second


def test_swipe_leaderboard_scores_correct_ratio():
    coordinator = make_coordinator()
    session = open_session(coordinator, mode=QuizModeType.SWIPE, questions=[swipe("s1"), swipe("s2")])
    coordinator.join_by_code(session.invite_code, Participant(id="p1", display_name="P1", joined_at=T0))
    coordinator.start_session(session.id, "host")
    coordinator.submit_answer(session.id, "p1", answer(0, correct=True, points=0))
    coordinator.submit_answer(session.id, "p1", answer(1, correct=False, points=0))
    rows = coordinator.leaderboard(session.id)
    assert rows[0].participant_id == "p1"
    assert rows[0].score == 50
