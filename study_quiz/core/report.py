"""End-of-session report derived from the attempt log."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from study_quiz.core.facade import ReportAdvisor
from study_quiz.core.models import (
    AttemptedQuestion,
    Difficulty,
    ExplainAttempt,
    FillBlanksAttempt,
    QuizReport,
    ReportInsights,
)

logger = logging.getLogger(__name__)

_LOW_REASONING_SCORE = 2


def overall_accuracy(attempts: Sequence[AttemptedQuestion]) -> int:
    """Percentage of fully correct attempts, rounded to a whole number."""
    if not attempts:
        return 0
    correct = sum(1 for attempt in attempts if attempt.is_correct)
    return round(correct / len(attempts) * 100)


def local_insights(attempts: Sequence[AttemptedQuestion]) -> ReportInsights:
    """Strengths and weaknesses that can be read straight off the attempts."""
    strengths: list[str] = []
    weaknesses: list[str] = []
    suggestions: list[str] = []

    for difficulty in Difficulty:
        tier = [attempt for attempt in attempts if attempt.difficulty is difficulty]
        if not tier:
            continue
        accuracy = overall_accuracy(tier)
        if accuracy >= 80:
            strengths.append(f"Strong on {difficulty.value} questions ({accuracy}% correct)")
        elif accuracy < 50:
            weaknesses.append(f"Struggled with {difficulty.value} questions ({accuracy}% correct)")

    expired = sum(1 for attempt in attempts if attempt.time_expired)
    if expired:
        weaknesses.append(f"Ran out of time on {expired} question(s)")
        suggestions.append("Practice answering under time pressure.")

    missed_terms = [
        result.expected_answer
        for attempt in attempts
        if isinstance(attempt, FillBlanksAttempt)
        for result in attempt.results
        if not result.is_correct
    ]
    if missed_terms:
        weaknesses.append("Missed terms: " + ", ".join(dict.fromkeys(missed_terms)))
        suggestions.append("Review the definitions of the terms you missed.")

    weak_reasoning = [
        attempt
        for attempt in attempts
        if isinstance(attempt, ExplainAttempt) and attempt.reasoning.score <= _LOW_REASONING_SCORE
    ]
    if weak_reasoning:
        suggestions.append("Explain the 'why' behind each answer in more detail.")

    if any(not attempt.is_correct for attempt in attempts):
        suggestions.append("Review the questions you missed.")
    return ReportInsights(
        strengths=tuple(strengths) or ("Completed the quiz",),
        weaknesses=tuple(weaknesses),
        suggestions=tuple(suggestions),
    )


async def build_quiz_report(
    attempts: Sequence[AttemptedQuestion],
    score: int,
    advisor: ReportAdvisor | None = None,
    notice: str | None = None,
) -> QuizReport:
    """Summarize a finished session.

    Accuracy and difficulty progression always come from the attempts
    themselves; only the free-text insights may come from ``advisor``.
    """
    insights: ReportInsights | None = None
    if advisor is not None and attempts:
        try:
            insights = await advisor.summarize_performance(attempts)
        except Exception:
            logger.exception("Report advisor failed; using local insights")
            insights = None
    if insights is None:
        insights = local_insights(attempts)

    return QuizReport(
        score=score,
        total_questions=len(attempts),
        correct_answers=sum(1 for attempt in attempts if attempt.is_correct),
        overall_accuracy=overall_accuracy(attempts),
        difficulty_progression=tuple(attempt.difficulty for attempt in attempts),
        strengths=insights.strengths,
        weaknesses=insights.weaknesses,
        suggestions=insights.suggestions,
        notice=notice,
    )
