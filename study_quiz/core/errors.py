"""Exceptions raised by the quiz engine and its collaborators."""

from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for engine failures that callers are expected to handle."""


class GenerationEmpty(QuizEngineError):
    """Question generation returned nothing (or failed) for a batch."""


class EvaluationUnavailable(QuizEngineError):
    """Reasoning grading failed; recovered locally with a fallback score."""


class InvalidJoinCode(QuizEngineError):
    """No joinable multiplayer session matches the invite code."""

    def __init__(self, code: str, reason: str = "Invalid quiz code.") -> None:
        super().__init__(reason)
        self.code = code


class SessionNotFound(QuizEngineError):
    """No multiplayer session exists with the given id."""


class SessionNotActive(QuizEngineError):
    """The multiplayer session is not in a status that accepts the request."""


class NotSessionHost(QuizEngineError):
    """Only the host may change the status of a multiplayer session."""


class NotEnoughParticipants(QuizEngineError):
    """A multiplayer session needs more participants before it can start."""


class QuizImportError(QuizEngineError):
    """Raised when a question bank definition cannot be parsed."""
