"""Static metadata describing QuizEngine."""

APP_NAME = "QuizEngine"
APP_VERSION = "0.1.0"
APP_ABOUT_TEXT = (
    "QuizEngine runs timed quiz attempts from a question bank, scores them and "
    "ranks completed attempts on per-category and global leaderboards."
)
