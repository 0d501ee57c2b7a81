import asyncio

import pytest

from study_quiz.core.models import (
    Answer,
    ExplainResponse,
    Participant,
    QuizModeType,
    ReasoningEvaluation,
    TimerConfig,
)
from study_quiz.core.services.answer_grader import grade_remote_answer, participant_streak
from tests.fakes import FakeBackend, choice, fill, swipe

TIMED = TimerConfig(enabled=True, duration_seconds=30)
UNTIMED = TimerConfig(enabled=False, duration_seconds=30)


def grade(question, response, streak=0, time_spent=0.0, timer=UNTIMED, backend=None):
    return asyncio.run(
        grade_remote_answer(
            question,
            0,
            response,
            streak=streak,
            time_spent=time_spent,
            timer=timer,
            backend=backend,
        )
    )


def test_streak_counts_trailing_correct_answers():
    participant = Participant(id="p", display_name="P")
    for index, correct in [(2, True), (0, True), (1, False), (3, True)]:
        participant.answers.append(
            Answer(question_index=index, response=0, is_correct=correct, points=0, time_spent=1.0)
        )
    assert participant_streak(participant) == 2
    assert participant_streak(Participant(id="q", display_name="Q")) == 0


def test_streak_breaks_at_a_skipped_question():
    participant = Participant(id="p", display_name="P")
    for index in (0, 1, 2, 4):
        participant.answers.append(
            Answer(question_index=index, response=0, is_correct=True, points=0, time_spent=1.0)
        )
    assert participant_streak(participant) == 1
    assert participant_streak(participant, before=5) == 1
    assert participant_streak(participant, before=3) == 3
    assert participant_streak(participant, before=4) == 0
    assert participant_streak(participant, before=6) == 0


def test_standard_answer_uses_time_left_on_the_clock():
    answer = grade(choice(), 1, streak=2, time_spent=10, timer=TIMED)
    assert answer.is_correct
    assert answer.points == 100 + 20 + 40
    assert answer.time_spent == 10.0
    assert grade(choice(), 0, timer=TIMED).points == 0


def test_time_bonus_needs_the_timer():
    assert grade(choice(), 1, time_spent=5, timer=UNTIMED).points == 100


def test_swipe_answers_score_no_points():
    answer = grade(swipe(correct_index=1), 1)
    assert answer.is_correct
    assert answer.points == 0


def test_fill_answers_store_what_was_typed():
    answer = grade(fill(), {"blank-1": "chlorophyll"})
    assert not answer.is_correct
    assert answer.points == 20
    assert answer.response == ("", "chlorophyll")


def test_explain_answer_without_backend_uses_fallback_grade():
    question = choice(mode=QuizModeType.EXPLAIN)
    answer = grade(question, ExplainResponse(selected_index=1, explanation="Because"))
    assert answer.points == 50 + 30


def test_explain_answer_with_backend():
    question = choice(mode=QuizModeType.EXPLAIN)
    backend = FakeBackend(evaluation=ReasoningEvaluation(score=5, feedback="Great"))
    answer = grade(question, ExplainResponse(selected_index=0, explanation="Because"), streak=1, backend=backend)
    assert not answer.is_correct
    assert answer.points == 50 + 10


@pytest.mark.parametrize(
    "question, response",
    [
        (choice(), 4),
        (choice(), ("a",)),
        (swipe(), 2),
        (fill(), 0),
        (choice(mode=QuizModeType.EXPLAIN), 1),
    ],
)
def test_mismatched_responses_are_rejected(question, response):
    with pytest.raises(ValueError):
        grade(question, response)
