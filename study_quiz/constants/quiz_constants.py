"""Quiz-related constants shared across the engine, backends and server."""

from __future__ import annotations

# Per-mode timer defaults as (enabled, duration_seconds). Callers may override.
DEFAULT_TIMER_SETTINGS: dict[str, tuple[bool, int]] = {
    "standard": (True, 30),
    "swipe": (False, 15),
    "fillBlanks": (False, 45),
    "explain": (False, 90),
}
TIMER_TICK_INTERVAL_SECONDS: float = 1.0
TIME_EXPIRED_INDEX: int = -1

# Scoring
STANDARD_CORRECT_POINTS: int = 100
STREAK_BONUS_PER_STEP: int = 10
STREAK_BONUS_CAP: int = 50
TIME_BONUS_PER_SECOND: int = 2
FILL_BLANK_POINTS: int = 20
FILL_ALL_CORRECT_BONUS: int = 50
EXPLAIN_CORRECT_POINTS: int = 50
REASONING_POINTS_PER_LEVEL: int = 10
SWIPE_SCORE_MULTIPLIER: int = 100

# Fuzzy matching for fill-in-the-blank answers
FUZZY_TOLERANCE_RATIO: float = 0.15
FUZZY_MIN_TOLERANCE: int = 1
BLANK_MARKER: str = "[___]"

# Reasoning evaluation
REASONING_MIN_SCORE: int = 1
REASONING_MAX_SCORE: int = 5
REASONING_FALLBACK_CORRECT: int = 3
REASONING_FALLBACK_INCORRECT: int = 2
REASONING_EXPIRED_SCORE: int = 1
REASONING_TIMEOUT_SECONDS: float = 30.0
REASONING_MAX_LIST_ITEMS: int = 5
REASONING_MAX_ITEM_LENGTH: int = 300
FALLBACK_FEEDBACK: str = "Automatic evaluation unavailable. Your answer has been recorded."
FALLBACK_IMPROVEMENT: str = "Try to provide more detailed reasoning in your explanation"
EXPIRED_FEEDBACK: str = "No explanation submitted before time ran out."
TIME_EXPIRED_PREFIX: str = "Time ran out! "

# Adaptive continuation
ADAPTIVE_WINDOW: int = 5
ADAPTIVE_ESCALATE_AT: int = 4
ADAPTIVE_DEESCALATE_AT: int = 2
GENERATION_EMPTY_MESSAGE: str = "Could not generate more questions for this content."
MIN_SOURCE_TEXT_LENGTH: int = 50
MAX_SOURCE_TEXT_LENGTH: int = 15000

# Multiplayer
INVITE_CODE_LENGTH: int = 6
INVITE_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
INVITE_CODE_MAX_ATTEMPTS: int = 50
MIN_PARTICIPANTS_TO_START: int = 2
DEFAULT_MULTIPLAYER_TITLE: str = "Multiplayer Quiz"
