"""Static metadata describing StudyQuiz."""

APP_NAME = "StudyQuiz"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "StudyQuiz turns study notes into graded, timed quizzes. "
    "Four quiz modes, adaptive difficulty and multiplayer sessions joined by invite code."
)
