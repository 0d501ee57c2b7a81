import pytest

from study_quiz.core.errors import GenerationEmpty
from study_quiz.core.models import Blank, FillBlanksQuestion, QuizModeType
from study_quiz.core.services.quiz_repository import QuestionBank
from tests.fakes import choice, fill, swipe


def test_invalid_questions_are_dropped():
    bank = QuestionBank()
    accepted = bank.load_questions(
        [choice("ok"), choice("bad", correct_index=4), swipe("s1"), fill("f1")],
        QuizModeType.STANDARD,
    )
    assert [q.id for q in accepted] == ["ok"]


def test_batch_with_nothing_usable_raises():
    with pytest.raises(GenerationEmpty):
        QuestionBank().load_questions([choice("bad", correct_index=-1)], QuizModeType.STANDARD)


def test_duplicate_and_missing_ids_are_replaced():
    bank = QuestionBank()
    bank.load_questions([choice("q1"), choice("q1"), choice("")], QuizModeType.STANDARD)
    bank.add_batch([choice("q1")], QuizModeType.STANDARD)
    ids = [q.id for q in bank.get_questions()]
    assert ids[0] == "q1"
    assert len(set(ids)) == 4


def test_explain_batches_take_the_session_mode():
    [question] = QuestionBank().load_questions([choice("e1")], QuizModeType.EXPLAIN)
    assert question.mode is QuizModeType.EXPLAIN


def test_blank_count_must_match_markers():
    mismatched = FillBlanksQuestion(
        id="f2",
        text_with_blanks="Only one [___] here.",
        blanks=(Blank(id="a", accepted_answers=("x",)), Blank(id="b", accepted_answers=("y",))),
    )
    empty_answers = FillBlanksQuestion(
        id="f3",
        text_with_blanks="One [___].",
        blanks=(Blank(id="a", accepted_answers=("  ",)),),
    )
    accepted = QuestionBank().load_questions([mismatched, empty_answers, fill("f1")], QuizModeType.FILL_BLANKS)
    assert [q.id for q in accepted] == ["f1"]


def test_load_replaces_previous_questions():
    bank = QuestionBank()
    bank.load_questions([choice("a")], QuizModeType.STANDARD)
    bank.load_questions([choice("b")], QuizModeType.STANDARD)
    assert [q.id for q in bank.get_questions()] == ["b"]
