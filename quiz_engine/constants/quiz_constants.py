"""Quiz-related constants shared across the engine, services and server."""

UNANSWERED: int = -1
DEFAULT_POINT_VALUE: int = 1
MIN_OPTION_COUNT: int = 2
MAX_OPTION_COUNT: int = 4

DEFAULT_QUESTION_COUNT: int = 5
DEFAULT_SESSION_TIME_SECONDS: int = 120
DEFAULT_TIME_PER_QUESTION_SECONDS: int = 30

CATEGORY_LEADERBOARD_LIMIT: int = 10
GLOBAL_LEADERBOARD_LIMIT: int = 20
