"""Environment variable names and defaults for the generation backends."""

API_KEY_ENV_VARS: tuple[str, ...] = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
MODEL_ENV_VAR: str = "STUDY_QUIZ_MODEL"
DEFAULT_MODEL: str = "gemini-2.5-flash"
BANK_PATH_ENV_VAR: str = "STUDY_QUIZ_BANK"
HOST_ENV_VAR: str = "STUDY_QUIZ_HOST"
PORT_ENV_VAR: str = "STUDY_QUIZ_PORT"
QUESTIONS_PER_BATCH: int = 5
SERVED_TEXTS_LIMIT: int = 64
