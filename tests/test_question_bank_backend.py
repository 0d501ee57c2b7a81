import asyncio

import pytest

from study_quiz.backends import QuestionBankBackend
from study_quiz.core.errors import EvaluationUnavailable
from study_quiz.core.models import Difficulty, QuizModeType
from study_quiz.core.quiz_manager import QuizManager
from study_quiz.core.reasoning import evaluate_with_fallback
from tests.fakes import STUDY_TEXT, choice, swipe


def _bank():
    return QuestionBankBackend(
        [
            choice("m1"),
            choice("h1", difficulty=Difficulty.HARD),
            choice("h2", difficulty=Difficulty.HARD),
            choice("e1", difficulty=Difficulty.EASY),
            swipe("s1"),
        ],
        batch_size=2,
    )


def test_requested_difficulty_is_served_first():
    backend = _bank()
    batch = asyncio.run(backend.generate_questions(STUDY_TEXT, QuizModeType.STANDARD, Difficulty.HARD))
    assert [q.id for q in batch] == ["h1", "h2"]


def test_questions_are_served_once_per_text():
    backend = _bank()

    async def drain():
        batches = []
        for _ in range(3):
            batches.append(await backend.generate_questions(STUDY_TEXT, QuizModeType.STANDARD, Difficulty.MEDIUM))
        other_text = await backend.generate_questions("Different material " * 5, QuizModeType.STANDARD, Difficulty.MEDIUM)
        return batches, other_text

    batches, other_text = asyncio.run(drain())
    assert [q.id for q in batches[0]] == ["m1", "h1"]
    assert [q.id for q in batches[1]] == ["h2", "e1"]
    assert batches[2] == []
    assert [q.id for q in other_text] == ["m1", "h1"]


def test_only_matching_mode_is_served():
    batch = asyncio.run(_bank().generate_questions(STUDY_TEXT, QuizModeType.SWIPE, Difficulty.MEDIUM))
    assert [q.id for q in batch] == ["s1"]


def test_reasoning_is_never_graded_offline():
    backend = _bank()
    question = choice("x1", mode=QuizModeType.EXPLAIN)
    with pytest.raises(EvaluationUnavailable):
        asyncio.run(backend.evaluate_reasoning(question, "Beta", "Beta", "because"))
    assert asyncio.run(evaluate_with_fallback(backend, question, 1, "because")).is_fallback


def test_session_ends_when_the_bank_runs_dry():
    manager = QuizManager(_bank())

    async def play():
        await manager.generate_and_start(STUDY_TEXT, QuizModeType.STANDARD)
        for _ in range(4):
            await manager.submit_answer(1)
            manager.advance()
            await manager.continue_adaptive()
        return manager.state

    state = asyncio.run(play())
    assert len(state.attempts) == 4
    assert state.report is not None
    assert state.notice is not None


def test_from_file(tmp_path):
    path = tmp_path / "bank.txt"
    path.write_text(
        "Q: First?\nA: a\nB: b\nC: c\nD: d\nCORRECT: B\n\nMODE: swipe\nQ: Sky is blue.\nCORRECT: TRUE\n",
        encoding="utf-8",
    )
    backend = QuestionBankBackend.from_file(path)
    batch = asyncio.run(backend.generate_questions(STUDY_TEXT, QuizModeType.STANDARD, Difficulty.MEDIUM))
    assert [q.prompt_text for q in batch] == ["First?"]


def test_served_history_forgets_the_oldest_text():
    backend = QuestionBankBackend([choice("m1")], batch_size=1, max_texts=2)

    async def serve(text):
        return [q.id for q in await backend.generate_questions(text, QuizModeType.STANDARD, Difficulty.MEDIUM)]

    async def run():
        first = await serve("first text")
        await serve("second text")
        repeat_second = await serve("second text")
        await serve("third text")
        second_again = await serve("second text")
        return first, repeat_second, second_again, await serve("first text")

    first, repeat_second, second_again, first_again = asyncio.run(run())
    assert first == ["m1"]
    assert repeat_second == []
    assert second_again == []
    assert first_again == ["m1"]
