"""Facade that runs quiz attempts and serves leaderboards for a hosting app."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging
from threading import Lock

from quiz_engine.constants.quiz_constants import (
    CATEGORY_LEADERBOARD_LIMIT,
    DEFAULT_QUESTION_COUNT,
    DEFAULT_SESSION_TIME_SECONDS,
    GLOBAL_LEADERBOARD_LIMIT,
)
from quiz_engine.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from quiz_engine.core.models import (
    Category,
    LeaderboardEntry,
    LeaderboardScope,
    Question,
    QuestionFlag,
    QuizResult,
)
from quiz_engine.core.quiz_session import Clock, QuizSession
from quiz_engine.core.services.leaderboard import LeaderboardService
from quiz_engine.core.services.question_source import QuestionSource
from quiz_engine.core.services.result_store import ResultStore
from quiz_engine.core.session_clock import SessionClock

logger = logging.getLogger(__name__)


def resolve_time_budget(category: Category, question_count: int) -> int:
    """Session time for ``question_count`` questions from ``category``.

    Uses the category's total time, else its per-question time for every
    question, else the default session time.
    """
    if category.total_time_seconds and category.total_time_seconds > 0:
        return category.total_time_seconds
    if category.time_per_question_seconds and category.time_per_question_seconds > 0:
        return category.time_per_question_seconds * question_count
    return DEFAULT_SESSION_TIME_SECONDS


class QuizEngine:
    """Facade over the question source, sessions, result store and leaderboard.

    Each attempt is its own ``QuizSession``; the engine only keeps a registry
    so callers can address sessions by id.
    """

    def __init__(
        self,
        question_source: QuestionSource,
        result_store: ResultStore,
        *,
        clock_factory: Callable[[], Clock] = SessionClock,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._lock = Lock()
        self._question_source = question_source
        self._result_store = result_store
        self._leaderboard = LeaderboardService(result_store)
        self._clock_factory = clock_factory
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, QuizSession] = {}

    # --- Attempts ---

    def begin_attempt(
        self,
        user_id: int,
        category_id: int,
        question_count: int = DEFAULT_QUESTION_COUNT,
        difficulty: str | None = None,
        time_budget_seconds: int | None = None,
    ) -> QuizSession:
        """Fetch questions for the category and start a new timed session."""
        if question_count <= 0:
            raise InvalidArgumentError("Question count must be positive.")
        category = self._question_source.get_category(category_id)
        questions = self._question_source.fetch(category.id, question_count, difficulty)
        if len(questions) < question_count:
            logger.info(
                "Category %d has only %d of %d requested questions",
                category.id,
                len(questions),
                question_count,
            )
        budget = (
            resolve_time_budget(category, len(questions))
            if time_budget_seconds is None
            else time_budget_seconds
        )

        session = QuizSession(
            user_id,
            category.id,
            result_store=self._result_store,
            clock=self._clock_factory(),
            now=self._now,
        )
        session.start(questions, budget)
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> QuizSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found.")
        return session

    def discard_session(self, session_id: str) -> None:
        """Forget a finished session. Active sessions must be submitted first."""
        session = self.get_session(session_id)
        if not session.is_terminal():
            raise InvalidStateError("Cannot discard a session that is still active.")
        with self._lock:
            self._sessions.pop(session_id, None)

    def active_session_count(self) -> int:
        with self._lock:
            sessions = list(self._sessions.values())
        return sum(1 for session in sessions if not session.is_terminal())

    def record_answer(self, session_id: str, option_index: int) -> None:
        self.get_session(session_id).record_answer(option_index)

    def advance(self, session_id: str, delta: int) -> int:
        return self.get_session(session_id).advance(delta)

    def submit(self, session_id: str) -> QuizResult:
        return self.get_session(session_id).submit()

    def current_question(self, session_id: str) -> Question:
        return self.get_session(session_id).current_question()

    def remaining(self, session_id: str) -> float:
        return self.get_session(session_id).remaining()

    def result(self, session_id: str) -> QuizResult:
        return self.get_session(session_id).result()

    def flag_question(self, session_id: str, reason: str) -> QuestionFlag:
        return self.get_session(session_id).flag_current_question(reason)

    # --- Categories ---

    def category_tree(self, with_questions_only: bool = False) -> list[tuple[Category, list[Category]]]:
        """Return top-level categories, each with its subcategories.

        With ``with_questions_only`` a parent is kept when it or one of its
        subcategories holds questions, and empty subcategories are dropped.
        """
        source = self._question_source
        allowed = {category.id for category in source.list_categories(with_questions_only)}
        tree: list[tuple[Category, list[Category]]] = []
        for parent in source.list_categories():
            if parent.parent_id is not None:
                continue
            children = sorted(
                (child for child in source.get_subcategories(parent.id) if child.id in allowed),
                key=lambda child: child.id,
            )
            if parent.id in allowed or children:
                tree.append((parent, children))
        return tree

    # --- Leaderboards ---

    def category_leaderboard(
        self, category_id: int, limit: int | None = CATEGORY_LEADERBOARD_LIMIT
    ) -> list[LeaderboardEntry]:
        return self._leaderboard.category_leaderboard(category_id, limit)

    def global_leaderboard(self, limit: int | None = GLOBAL_LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
        return self._leaderboard.global_leaderboard(limit)

    def find_user_rank(self, user_id: int, category_id: int | None = None) -> LeaderboardEntry | None:
        return self._leaderboard.find_user_rank(user_id, LeaderboardScope(category_id=category_id))

    def user_history(self, user_id: int) -> list[QuizResult]:
        return self._leaderboard.user_history(user_id)
