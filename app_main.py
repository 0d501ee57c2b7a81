"""Application entry point for the StudyQuiz multiplayer server."""

from __future__ import annotations

from collections.abc import Mapping
import os
from pathlib import Path
import socket

from study_quiz.backends import GeminiBackend, QuestionBankBackend
from study_quiz.constants.backend_constants import BANK_PATH_ENV_VAR, HOST_ENV_VAR, PORT_ENV_VAR
from study_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from study_quiz.core.facade import QuizBackend
from study_quiz.core.services.lobby_manager import MultiplayerCoordinator
from study_quiz.server.api_server import run_api_server
from study_quiz.utils.logging_config import configure_logging


def _determine_public_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def select_backend(environ: Mapping[str, str] = os.environ) -> QuizBackend:
    """Use the offline question bank when one is configured, Gemini otherwise."""
    bank_path = environ.get(BANK_PATH_ENV_VAR, "").strip()
    if bank_path:
        return QuestionBankBackend.from_file(Path(bank_path))
    return GeminiBackend.from_environment(environ)


def main() -> None:
    """Initialize logging, pick a backend, and serve the API."""
    logger = configure_logging()
    logger.info("Starting StudyQuiz server…")

    host = os.environ.get(HOST_ENV_VAR, "").strip() or DEFAULT_HOST
    port = int(os.environ.get(PORT_ENV_VAR, "").strip() or DEFAULT_PORT)
    backend = select_backend()
    logger.info("Using %s for question generation", type(backend).__name__)
    logger.info("Participants can reach the API at %s", _determine_public_url(port))

    run_api_server(MultiplayerCoordinator(), backend, host=host, port=port)


if __name__ == "__main__":
    main()
