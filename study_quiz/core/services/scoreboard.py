"""Leaderboard derivation for multiplayer sessions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from study_quiz.core.models import Participant, QuizModeType
from study_quiz.core.scoring import swipe_session_score


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    participant_id: str
    display_name: str
    score: int
    correct_answers: int
    total_questions: int
    total_time: float
    average_time: float
    joined_at: datetime


def participant_score(participant: Participant, mode: QuizModeType, question_count: int) -> int:
    """Total score of one participant; swipe sessions score the correct ratio."""
    if mode is QuizModeType.SWIPE:
        return swipe_session_score(participant.correct_answers, question_count)
    return participant.score


def derive_leaderboard(
    participants: Iterable[Participant],
    mode: QuizModeType = QuizModeType.STANDARD,
    question_count: int = 0,
    limit: int | None = None,
) -> list[LeaderboardRow]:
    """Rank participants from their answer logs.

    Reads only the append-only answer lists, so calling it again on the same
    logs yields the same rows.
    """
    scored = [(participant_score(p, mode, question_count), p) for p in participants]
    # Score, then correct answers, then speed; join order and id make it total.
    scored.sort(
        key=lambda item: (
            -item[0],
            -item[1].correct_answers,
            item[1].total_time,
            item[1].joined_at,
            item[1].id,
        )
    )
    if limit is not None:
        scored = scored[:limit]
    rows: list[LeaderboardRow] = []
    for position, (score, participant) in enumerate(scored, start=1):
        answered = len(participant.answers)
        rows.append(
            LeaderboardRow(
                rank=position,
                participant_id=participant.id,
                display_name=participant.display_name,
                score=score,
                correct_answers=participant.correct_answers,
                total_questions=answered,
                total_time=participant.total_time,
                average_time=participant.total_time / answered if answered else 0.0,
                joined_at=participant.joined_at,
            )
        )
    return rows
