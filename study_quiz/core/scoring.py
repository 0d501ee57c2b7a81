"""Point calculations for every quiz mode.

Scores are non-negative integers computed once per attempt and never revised.
The streak used for a bonus is the streak *before* the question was answered.
"""

from __future__ import annotations

from collections.abc import Sequence
import math

from study_quiz.constants.quiz_constants import (
    EXPLAIN_CORRECT_POINTS,
    FILL_ALL_CORRECT_BONUS,
    FILL_BLANK_POINTS,
    REASONING_POINTS_PER_LEVEL,
    STANDARD_CORRECT_POINTS,
    STREAK_BONUS_CAP,
    STREAK_BONUS_PER_STEP,
    SWIPE_SCORE_MULTIPLIER,
    TIME_BONUS_PER_SECOND,
)
from study_quiz.core.models import AttemptedQuestion, QuizModeType


def streak_bonus(streak: int) -> int:
    return min(max(streak, 0) * STREAK_BONUS_PER_STEP, STREAK_BONUS_CAP)


def time_bonus(time_remaining: float, timer_enabled: bool) -> int:
    if not timer_enabled or time_remaining <= 0:
        return 0
    return math.floor(time_remaining * TIME_BONUS_PER_SECOND)


def next_streak(streak: int, fully_correct: bool) -> int:
    return streak + 1 if fully_correct else 0


def standard_points(
    is_correct: bool,
    streak: int,
    time_remaining: float,
    timer_enabled: bool = True,
) -> int:
    """100 for a correct pick plus streak and time bonuses; nothing otherwise."""
    if not is_correct:
        return 0
    return STANDARD_CORRECT_POINTS + streak_bonus(streak) + time_bonus(time_remaining, timer_enabled)


def fill_blanks_points(
    correct_blank_count: int,
    total_blanks: int,
    streak: int,
    time_remaining: float,
    timer_enabled: bool,
) -> int:
    points = FILL_BLANK_POINTS * correct_blank_count
    if total_blanks > 0 and correct_blank_count == total_blanks:
        points += FILL_ALL_CORRECT_BONUS
    return points + time_bonus(time_remaining, timer_enabled) + streak_bonus(streak)


def explain_points(
    answer_correct: bool,
    reasoning_score: int,
    streak: int,
    time_remaining: float,
    timer_enabled: bool,
) -> int:
    points = EXPLAIN_CORRECT_POINTS if answer_correct else 0
    points += reasoning_score * REASONING_POINTS_PER_LEVEL
    return points + time_bonus(time_remaining, timer_enabled) + streak_bonus(streak)


def swipe_session_score(correct_count: int, total: int) -> int:
    """Ratio of correct swipes scaled to a 0-100 score."""
    if total <= 0:
        return 0
    return math.floor(correct_count / total * SWIPE_SCORE_MULTIPLIER)


def final_session_score(
    mode: QuizModeType,
    attempts: Sequence[AttemptedQuestion],
    running_score: int,
) -> int:
    """Score shown at the end of a session."""
    match mode:
        case QuizModeType.SWIPE:
            correct = sum(1 for attempt in attempts if attempt.is_correct)
            return swipe_session_score(correct, len(attempts))
        case QuizModeType.STANDARD | QuizModeType.FILL_BLANKS | QuizModeType.EXPLAIN:
            return running_score
