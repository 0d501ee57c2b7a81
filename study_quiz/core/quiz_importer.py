"""Utilities for importing a question bank from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    MODE: standard|swipe|fillBlanks|explain   (optional, default standard)
    DIFFICULTY: easy|medium|hard              (optional, default medium)
    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question. Fill-in-the-blank
       prompts mark each gap with [___].
    A: First option text          (standard and explain only)
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D  or  TRUE|FALSE for swipe statements
    BLANK: answer | alternative   (fillBlanks, one line per [___] in order)
    EXPLANATION: Why the answer is right (optional, may span lines)

Example:

    MODE: fillBlanks
    DIFFICULTY: easy
    Q: Plants turn light into chemical energy through [___].
    BLANK: photosynthesis
    EXPLANATION: Chlorophyll captures the light.

The backend that serves questions offline filters the parsed bank by mode
and difficulty, so one file can hold questions for every mode.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from itertools import groupby
from pathlib import Path
import re

from study_quiz.core.errors import QuizImportError
from study_quiz.core.matchers import count_blanks
from study_quiz.core.models import (
    Blank,
    ChoiceQuestion,
    Difficulty,
    FillBlanksQuestion,
    Question,
    QuizModeType,
    SwipeQuestion,
)

__all__ = ["ImportedBank", "QuizImportError", "load_bank_from_file", "parse_bank_text"]


@dataclass(slots=True)
class ImportedBank:
    """Container for imported bank metadata and questions."""

    source_path: Path | None
    questions: list[Question]


_OPTION_LETTERS = ("A", "B", "C", "D")
_SWIPE_ANSWERS = {"TRUE": 0, "T": 0, "FALSE": 1, "F": 1}
_MODES = {mode.value.casefold(): mode for mode in QuizModeType}
_DIFFICULTIES = {difficulty.value: difficulty for difficulty in Difficulty}
_SECTION = re.compile(
    r"^(MODE|DIFFICULTY|Q|A|B|C|D|CORRECT|BLANK|EXPLANATION)\s*:\s*(.*)$",
    re.IGNORECASE,
)
# Sections whose text may continue on the following lines.
_MULTILINE = {"Q", "EXPLANATION", *_OPTION_LETTERS}


@dataclass(slots=True)
class _Fields:
    mode: QuizModeType = QuizModeType.STANDARD
    difficulty: Difficulty = Difficulty.MEDIUM
    correct: str | None = None
    text: dict[str, list[str]] = field(default_factory=dict)
    blanks: list[tuple[str, ...]] = field(default_factory=list)

    def joined(self, section: str) -> str:
        return "\n".join(self.text.get(section, [])).strip()


def load_bank_from_file(file_path: Path) -> ImportedBank:
    questions = parse_bank_text(file_path.read_text(encoding="utf-8"))
    if not questions:
        raise QuizImportError(f"{file_path.name} does not contain any questions.")
    return ImportedBank(source_path=file_path, questions=questions)


def parse_bank_text(text: str) -> list[Question]:
    """Parse every block of ``text``; the first bad block aborts the import."""
    questions: list[Question] = []
    for position, block in enumerate(_split_blocks(text), start=1):
        try:
            questions.append(_build_question(_read_fields(block), f"bank-{position}"))
        except QuizImportError as exc:
            raise QuizImportError(f"Question {position}: {exc}") from exc
    return questions


def _split_blocks(text: str) -> Iterator[list[str]]:
    for is_separator, lines in groupby(text.splitlines(), key=lambda line: line.strip() in ("", "---")):
        if not is_separator:
            yield [line.strip() for line in lines]


def _read_fields(lines: list[str]) -> _Fields:
    fields = _Fields()
    open_section: str | None = None
    for line in lines:
        found = _SECTION.match(line)
        if found is None:
            if open_section is None:
                raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")
            fields.text[open_section].append(line)
            continue

        section, value = found.group(1).upper(), found.group(2).strip()
        open_section = section if section in _MULTILINE else None
        match section:
            case "MODE":
                fields.mode = _parse_mode(value)
            case "DIFFICULTY":
                if value.lower() not in _DIFFICULTIES:
                    raise QuizImportError("DIFFICULTY must be one of easy, medium or hard.")
                fields.difficulty = _DIFFICULTIES[value.lower()]
            case "CORRECT":
                fields.correct = value.upper()
            case "BLANK":
                answers = tuple(answer.strip() for answer in value.split("|") if answer.strip())
                if not answers:
                    raise QuizImportError("BLANK must list at least one accepted answer.")
                fields.blanks.append(answers)
            case _:
                fields.text[section] = [value]
    return fields


def _build_question(fields: _Fields, question_id: str) -> Question:
    prompt = fields.joined("Q")
    if not prompt:
        raise QuizImportError("Question text missing (Q: ...)")
    explanation = fields.joined("EXPLANATION")
    options = [letter for letter in _OPTION_LETTERS if letter in fields.text]

    match fields.mode:
        case QuizModeType.SWIPE:
            if options:
                raise QuizImportError("True/False statements do not take options.")
            if fields.correct not in _SWIPE_ANSWERS:
                raise QuizImportError("CORRECT must be TRUE or FALSE for swipe statements.")
            return SwipeQuestion(
                id=question_id,
                prompt_text=prompt,
                correct_index=_SWIPE_ANSWERS[fields.correct],
                explanation_text=explanation,
                difficulty=fields.difficulty,
            )
        case QuizModeType.FILL_BLANKS:
            markers = count_blanks(prompt)
            if markers == 0:
                raise QuizImportError("Fill-in-the-blank prompts need at least one [___] marker.")
            if markers != len(fields.blanks):
                raise QuizImportError(f"Prompt has {markers} [___] marker(s) but {len(fields.blanks)} BLANK line(s).")
            return FillBlanksQuestion(
                id=question_id,
                text_with_blanks=prompt,
                blanks=tuple(
                    Blank(id=f"blank-{index}", accepted_answers=answers)
                    for index, answers in enumerate(fields.blanks)
                ),
                explanation_text=explanation,
                difficulty=fields.difficulty,
            )
        case QuizModeType.STANDARD | QuizModeType.EXPLAIN:
            if len(options) != 4:
                raise QuizImportError("Each question must define exactly four options (A-D).")
            labels = tuple(fields.joined(letter) for letter in _OPTION_LETTERS)
            if not all(labels):
                raise QuizImportError("Option text cannot be empty.")
            if fields.correct not in _OPTION_LETTERS:
                raise QuizImportError("CORRECT must be one of A, B, C, or D.")
            return ChoiceQuestion(
                id=question_id,
                prompt_text=prompt,
                options=labels,
                correct_index=_OPTION_LETTERS.index(fields.correct),
                explanation_text=explanation,
                difficulty=fields.difficulty,
                mode=fields.mode,
            )


def _parse_mode(raw_value: str) -> QuizModeType:
    mode = _MODES.get(raw_value.casefold())
    if mode is None:
        raise QuizImportError("MODE must be one of standard, swipe, fillBlanks or explain.")
    return mode
