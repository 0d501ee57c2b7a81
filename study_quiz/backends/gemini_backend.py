"""Question generation and reasoning grading backed by Google Gemini."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
import os

from google import genai
from google.genai import types

from study_quiz.backends.payloads import parse_question_batch, parse_reasoning, parse_report
from study_quiz.constants.backend_constants import (
    API_KEY_ENV_VARS,
    DEFAULT_MODEL,
    MODEL_ENV_VAR,
    QUESTIONS_PER_BATCH,
)
from study_quiz.constants.quiz_constants import MAX_SOURCE_TEXT_LENGTH
from study_quiz.core.errors import EvaluationUnavailable
from study_quiz.core.models import (
    AttemptedQuestion,
    ChoiceQuestion,
    Difficulty,
    Question,
    QuizModeType,
    ReasoningEvaluation,
    ReportInsights,
)

logger = logging.getLogger(__name__)

_FOCUS: Mapping[QuizModeType, Mapping[Difficulty, str]] = {
    QuizModeType.STANDARD: {
        Difficulty.EASY: "Focus on basic definitions.",
        Difficulty.MEDIUM: "Focus on understanding.",
        Difficulty.HARD: "Focus on application and reasoning.",
    },
    QuizModeType.SWIPE: {
        Difficulty.EASY: "Use simple, direct facts.",
        Difficulty.MEDIUM: "Use facts that require understanding the material.",
        Difficulty.HARD: "Use subtle statements that are easy to get wrong without careful reading.",
    },
    QuizModeType.FILL_BLANKS: {
        Difficulty.EASY: "Focus on basic terms and simple facts. Create 1-2 blanks per question.",
        Difficulty.MEDIUM: "Focus on key concepts and definitions. Create 1-2 blanks per question.",
        Difficulty.HARD: "Focus on complex concepts and relationships. Create 2-3 blanks per question.",
    },
    QuizModeType.EXPLAIN: {
        Difficulty.EASY: (
            "Focus on 'why' questions about basic concepts. Questions should test understanding, not just recall."
        ),
        Difficulty.MEDIUM: (
            "Focus on understanding and reasoning. Questions should require explanation of concepts."
        ),
        Difficulty.HARD: (
            "Focus on complex reasoning, application, and analysis. Questions should require deep thinking."
        ),
    },
}

_CHOICE_FORMAT = (
    'Return a JSON array of objects with "text", "options" (exactly 4 strings), '
    '"correctIndex" (0-3), "explanation" and "difficulty" (easy, medium or hard).'
)

_INSTRUCTIONS: Mapping[QuizModeType, str] = {
    QuizModeType.STANDARD: (
        "Extract {count} key concepts from the content and create multiple choice questions.\n"
        "{focus}\n" + _CHOICE_FORMAT
    ),
    QuizModeType.SWIPE: (
        "Extract {count} key facts from the content and create True/False statements.\n"
        "Some should be True, some False (balanced mix).\n{focus}\n"
        'Return a JSON array of objects with "text" (the statement), "correctIndex" '
        '(0 for True, 1 for False) and "explanation".'
    ),
    QuizModeType.FILL_BLANKS: (
        "Create {count} fill-in-the-blank questions from the content.\n{focus}\n"
        "For each question replace key terms with the [___] placeholder, provide several "
        "acceptable answers per blank (synonyms, variations, different forms) and a clear explanation.\n"
        'Return a JSON array of objects with "textWithBlanks", "blanks" (a list of objects with '
        '"id" and "correctAnswers", one per [___] in order), "explanation" and "difficulty".'
    ),
    QuizModeType.EXPLAIN: (
        "Create {count} multiple choice questions that require reasoning and explanation.\n{focus}\n"
        'The questions should ask "why" or "how" rather than just "what", have 4 plausible options '
        "and test understanding, not memorization.\n" + _CHOICE_FORMAT
    ),
}

_REASONING_PROMPT = """Evaluate this student's reasoning for a quiz question.

Question: {question}
Correct Answer: {correct}
Student's Answer: {chosen}
Student's Explanation: {explanation}

Evaluate the QUALITY OF REASONING (not just answer correctness): logical coherence,
relevance to the question, depth of understanding, use of evidence or examples.

Return JSON with:
- score: integer from 1 (no reasoning or off-topic) to 5 (excellent reasoning with deep understanding)
- feedback: overall assessment in 2-3 sentences
- strengths: array of strings
- improvements: array of strings

Be encouraging but honest. Good reasoning behind a wrong answer should still be acknowledged."""

_REPORT_PROMPT = """Analyze this quiz performance and generate a learning report.
Performance Summary:
{summary}

Return JSON with:
- strengths: array of strings (concepts they know well)
- weaknesses: array of strings (concepts they need to review)
- suggestions: array of strings (actionable advice)

Look for patterns: did they struggle with hard questions, did accuracy change with difficulty,
were definitions or applications missed?"""


def resolve_api_key(environ: Mapping[str, str] = os.environ) -> str | None:
    for name in API_KEY_ENV_VARS:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


class GeminiBackend:
    """Implements both the question backend and the report advisor contracts."""

    def __init__(self, client: genai.Client, model: str = DEFAULT_MODEL) -> None:
        self._client = client
        self._model = model

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] = os.environ) -> GeminiBackend:
        api_key = resolve_api_key(environ)
        if api_key is None:
            raise ValueError(f"Set one of {', '.join(API_KEY_ENV_VARS)} to use the Gemini backend.")
        model = environ.get(MODEL_ENV_VAR, "").strip() or DEFAULT_MODEL
        return cls(genai.Client(api_key=api_key), model=model)

    async def generate_questions(
        self,
        source_text: str,
        mode: QuizModeType,
        difficulty: Difficulty,
    ) -> list[Question]:
        instructions = _INSTRUCTIONS[mode].format(count=QUESTIONS_PER_BATCH, focus=_FOCUS[mode][difficulty])
        prompt = f"{instructions}\n\nCONTENT TO PROCESS:\n{source_text[:MAX_SOURCE_TEXT_LENGTH]}"
        raw_text = await self._generate_json(prompt)
        questions = parse_question_batch(raw_text, mode, difficulty)
        logger.info("Gemini produced %d %s question(s) at %s", len(questions), mode.value, difficulty.value)
        return questions

    async def evaluate_reasoning(
        self,
        question: ChoiceQuestion,
        correct_option: str,
        chosen_option: str,
        user_explanation: str,
    ) -> ReasoningEvaluation:
        prompt = _REASONING_PROMPT.format(
            question=question.prompt_text,
            correct=correct_option,
            chosen=chosen_option,
            explanation=user_explanation or "(no explanation given)",
        )
        try:
            raw_text = await self._generate_json(prompt)
        except Exception as exc:
            raise EvaluationUnavailable(str(exc)) from exc
        return parse_reasoning(raw_text)

    async def summarize_performance(self, attempts: Sequence[AttemptedQuestion]) -> ReportInsights | None:
        lines = [
            f"Q{position} ({attempt.difficulty.value}): {attempt.question.prompt_text[:50]}... - "
            f"{'CORRECT' if attempt.is_correct else 'WRONG'}"
            for position, attempt in enumerate(attempts, start=1)
        ]
        raw_text = await self._generate_json(_REPORT_PROMPT.format(summary="\n".join(lines)))
        return parse_report(raw_text)

    async def _generate_json(self, prompt: str) -> str | None:
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=prompt,
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        return response.text
