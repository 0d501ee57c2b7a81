"""Correctness checks for each quiz mode.

All functions here are pure: they take the question and the raw input and
return a verdict, leaving scoring and streak bookkeeping to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
import math

from study_quiz.constants.quiz_constants import (
    BLANK_MARKER,
    FUZZY_MIN_TOLERANCE,
    FUZZY_TOLERANCE_RATIO,
    TIME_EXPIRED_INDEX,
)
from study_quiz.core.models import (
    BlankResult,
    ChoiceQuestion,
    FillBlanksQuestion,
    SwipeQuestion,
)


def match_choice(question: ChoiceQuestion | SwipeQuestion, selected_index: int) -> bool:
    """Exact index comparison. The time-expired sentinel never matches."""
    if selected_index == TIME_EXPIRED_INDEX:
        return False
    return selected_index == question.correct_index


def normalize_answer(text: str) -> str:
    return text.strip().casefold()


def levenshtein(first: str, second: str) -> int:
    """Edit distance with unit cost insertions, deletions and substitutions."""
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def allowed_edits(accepted: str) -> int:
    return max(FUZZY_MIN_TOLERANCE, math.floor(len(accepted) * FUZZY_TOLERANCE_RATIO))


def fuzzy_match(candidate: str, accepted_answers: Iterable[str]) -> bool:
    """Return True when ``candidate`` is close enough to any accepted answer.

    Exact (case-insensitive, trimmed) matches win first; otherwise the
    Levenshtein distance must stay within 15% of the accepted answer's length,
    with a floor of one edit. Blank input never matches.
    """
    normalized = normalize_answer(candidate)
    if not normalized:
        return False
    accepted = [normalize_answer(answer) for answer in accepted_answers]
    accepted = [answer for answer in accepted if answer]
    if normalized in accepted:
        return True
    return any(levenshtein(normalized, answer) <= allowed_edits(answer) for answer in accepted)


def match_blanks(
    question: FillBlanksQuestion,
    responses: Sequence[str] | Mapping[str, str],
) -> tuple[BlankResult, ...]:
    """Grade every blank in order. Missing responses count as empty input."""
    if isinstance(responses, Mapping):
        ordered = [responses.get(blank.id, "") for blank in question.blanks]
    else:
        ordered = list(responses)
    results: list[BlankResult] = []
    for position, blank in enumerate(question.blanks):
        user_answer = ordered[position] if position < len(ordered) else ""
        results.append(
            BlankResult(
                blank_id=blank.id,
                user_answer=user_answer,
                expected_answer=blank.accepted_answers[0] if blank.accepted_answers else "",
                is_correct=fuzzy_match(user_answer, blank.accepted_answers),
            )
        )
    return tuple(results)


@dataclass(frozen=True, slots=True)
class PromptSegment:
    text: str
    blank_id: str | None = None

    @property
    def is_blank(self) -> bool:
        return self.blank_id is not None


def count_blanks(text_with_blanks: str) -> int:
    return text_with_blanks.count(BLANK_MARKER)


def split_blanks(text_with_blanks: str) -> list[PromptSegment]:
    """Split a prompt into literal text and ``blank-N`` segments for rendering."""
    segments: list[PromptSegment] = []
    pieces = text_with_blanks.split(BLANK_MARKER)
    for index, piece in enumerate(pieces):
        if piece:
            segments.append(PromptSegment(text=piece))
        if index < len(pieces) - 1:
            segments.append(PromptSegment(text="", blank_id=f"blank-{index}"))
    return segments
