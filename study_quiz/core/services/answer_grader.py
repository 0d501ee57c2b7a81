"""Grades answers that arrive from remote participants.

Remote clients only send what they picked; correctness and points are
computed here with the same matchers and scoring rules as a local session.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from study_quiz.constants.quiz_constants import TIME_EXPIRED_INDEX
from study_quiz.core.facade import QuizBackend
from study_quiz.core.matchers import match_blanks, match_choice
from study_quiz.core.models import (
    Answer,
    AnswerInput,
    ChoiceQuestion,
    ExplainResponse,
    FillBlanksQuestion,
    Participant,
    Question,
    QuizModeType,
    SwipeQuestion,
    TimerConfig,
)
from study_quiz.core.reasoning import evaluate_with_fallback, fallback_evaluation
from study_quiz.core.scoring import explain_points, fill_blanks_points, standard_points


def participant_streak(participant: Participant, before: int | None = None) -> int:
    """Consecutive correct answers ending at the participant's latest question.

    A skipped question breaks the run. With ``before``, only answers to
    earlier questions count and the run must end at ``before - 1``.
    """
    answered = {answer.question_index: answer for answer in participant.answers}
    if before is None:
        if not answered:
            return 0
        index = max(answered)
    else:
        index = before - 1
    streak = 0
    while index in answered and answered[index].is_correct:
        streak += 1
        index -= 1
    return streak


def _check_choice(question: ChoiceQuestion | SwipeQuestion, selected_index: int) -> None:
    if selected_index != TIME_EXPIRED_INDEX and not 0 <= selected_index < len(question.options):
        raise ValueError(f"Option index {selected_index} is out of range.")


async def grade_remote_answer(
    question: Question,
    question_index: int,
    response: int | Sequence[str] | Mapping[str, str] | ExplainResponse,
    *,
    streak: int,
    time_spent: float,
    timer: TimerConfig,
    backend: QuizBackend | None = None,
) -> Answer:
    """Turn a raw response into an immutable :class:`Answer`."""
    time_spent = max(float(time_spent), 0.0)
    time_remaining = max(timer.duration_seconds - time_spent, 0.0) if timer.enabled else 0.0
    stored: AnswerInput

    match question:
        case SwipeQuestion():
            if not isinstance(response, int):
                raise ValueError("True/False questions take a selected option index.")
            _check_choice(question, response)
            is_correct = match_choice(question, response)
            points = 0
            stored = response
        case FillBlanksQuestion():
            if isinstance(response, (int, ExplainResponse)):
                raise ValueError("Fill-in-the-blank questions take one response per blank.")
            results = match_blanks(question, response)
            correct = sum(1 for result in results if result.is_correct)
            is_correct = correct == len(question.blanks)
            points = fill_blanks_points(correct, len(question.blanks), streak, time_remaining, timer.enabled)
            stored = tuple(result.user_answer for result in results)
        case ChoiceQuestion(mode=QuizModeType.EXPLAIN):
            if not isinstance(response, ExplainResponse):
                raise ValueError("Explain questions take a selected option and an explanation.")
            _check_choice(question, response.selected_index)
            is_correct = match_choice(question, response.selected_index)
            if backend is None:
                evaluation = fallback_evaluation(is_correct)
            else:
                evaluation = await evaluate_with_fallback(
                    backend, question, response.selected_index, response.explanation
                )
            points = explain_points(is_correct, evaluation.score, streak, time_remaining, timer.enabled)
            stored = response
        case ChoiceQuestion():
            if not isinstance(response, int):
                raise ValueError("Multiple-choice questions take a selected option index.")
            _check_choice(question, response)
            is_correct = match_choice(question, response)
            points = standard_points(is_correct, streak, time_remaining, timer.enabled)
            stored = response
        case _:
            raise ValueError(f"Unsupported question type {type(question).__name__}.")

    return Answer(
        question_index=question_index,
        response=stored,
        is_correct=is_correct,
        points=points,
        time_spent=time_spent,
    )
