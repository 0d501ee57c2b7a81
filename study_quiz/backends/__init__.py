"""Backends that generate questions and grade reasoning for the quiz engine."""

from study_quiz.backends.gemini_backend import GeminiBackend
from study_quiz.backends.question_bank_backend import QuestionBankBackend

__all__ = ["GeminiBackend", "QuestionBankBackend"]
