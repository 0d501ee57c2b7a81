import pytest

from study_quiz.core.models import (
    ChoiceQuestion,
    Difficulty,
    FillBlanksQuestion,
    QuizModeType,
    SwipeQuestion,
)
from study_quiz.core.quiz_importer import QuizImportError, load_bank_from_file, parse_bank_text

BANK = """
Q: What does chlorophyll absorb?
A: Light
B: Water
C: Oxygen
D: Sugar
CORRECT: A
EXPLANATION: Chlorophyll is a pigment.
---
MODE: swipe
DIFFICULTY: easy
Q: The Calvin cycle needs light directly.
CORRECT: FALSE

MODE: fillBlanks
DIFFICULTY: hard
Q: Plants make sugar through [___] in the
   [___].
BLANK: photosynthesis
BLANK: chloroplast | chloroplasts
EXPLANATION: The light reactions
  happen in the thylakoids.

MODE: explain
Q: Why do leaves look green?
A: They absorb green light
B: They reflect green light
C: They emit green light
D: They store green light
CORRECT: b
"""


def test_parses_every_mode():
    questions = parse_bank_text(BANK)
    assert [q.mode for q in questions] == [
        QuizModeType.STANDARD,
        QuizModeType.SWIPE,
        QuizModeType.FILL_BLANKS,
        QuizModeType.EXPLAIN,
    ]
    standard, statement, gaps, explain = questions

    assert isinstance(standard, ChoiceQuestion)
    assert standard.correct_index == 0
    assert standard.difficulty is Difficulty.MEDIUM
    assert standard.explanation_text == "Chlorophyll is a pigment."

    assert isinstance(statement, SwipeQuestion)
    assert statement.correct_index == 1
    assert statement.difficulty is Difficulty.EASY

    assert isinstance(gaps, FillBlanksQuestion)
    assert gaps.text_with_blanks == "Plants make sugar through [___] in the\n[___]."
    assert [b.accepted_answers for b in gaps.blanks] == [("photosynthesis",), ("chloroplast", "chloroplasts")]
    assert gaps.explanation_text == "The light reactions\nhappen in the thylakoids."

    assert isinstance(explain, ChoiceQuestion)
    assert explain.correct_index == 1


def test_ids_are_unique():
    ids = [q.id for q in parse_bank_text(BANK)]
    assert len(set(ids)) == len(ids)


@pytest.mark.parametrize(
    "block, message",
    [
        ("Q: Missing options\nA: one\nCORRECT: A", "four options"),
        ("Q: Bad answer\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: E", "CORRECT"),
        ("MODE: swipe\nQ: Statement\nCORRECT: maybe", "TRUE or FALSE"),
        ("MODE: fillBlanks\nQ: One [___] two [___]\nBLANK: a", "marker"),
        ("MODE: fillBlanks\nQ: No gaps here\nBLANK: a", "[___]"),
        ("MODE: quiz\nQ: Unknown", "MODE"),
        ("stray text\nQ: Hello", "outside of a known section"),
    ],
)
def test_rejects_malformed_blocks(block, message):
    with pytest.raises(QuizImportError) as excinfo:
        parse_bank_text(block)
    assert message in str(excinfo.value)


def test_load_from_file(tmp_path):
    path = tmp_path / "bank.txt"
    path.write_text(BANK, encoding="utf-8")
    imported = load_bank_from_file(path)
    assert imported.source_path == path
    assert len(imported.questions) == 4


def test_empty_file_is_an_error(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("\n\n---\n", encoding="utf-8")
    with pytest.raises(QuizImportError):
        load_bank_from_file(path)
