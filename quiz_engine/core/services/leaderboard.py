"""Leaderboard ranking over stored quiz results."""

from __future__ import annotations

from collections.abc import Iterable

from quiz_engine.constants.quiz_constants import (
    CATEGORY_LEADERBOARD_LIMIT,
    GLOBAL_LEADERBOARD_LIMIT,
)
from quiz_engine.core.errors import InvalidArgumentError
from quiz_engine.core.models import LeaderboardEntry, LeaderboardScope, QuizResult
from quiz_engine.core.scoring import percentage
from quiz_engine.core.services.result_store import ResultStore


def rank(
    results: Iterable[QuizResult],
    scope: LeaderboardScope | None = None,
    limit: int | None = None,
) -> list[LeaderboardEntry]:
    """Rank ``results`` by score (high first), then completion time (early first).

    Results equal on both keys keep their input order. Ranks are positions,
    never shared, and ``limit`` is applied only after the full sort.
    """
    if limit is not None and limit < 0:
        raise InvalidArgumentError("Leaderboard limit must not be negative.")
    scope = scope or LeaderboardScope.all_categories()

    in_scope = [result for result in results if scope.matches(result)]
    ordered = sorted(in_scope, key=lambda r: (-r.score, r.completed_at))
    if limit is not None:
        ordered = ordered[:limit]

    return [
        LeaderboardEntry(
            rank=position,
            result=result,
            percentage=percentage(result.score, result.total_questions),
        )
        for position, result in enumerate(ordered, start=1)
    ]


class LeaderboardService:
    """Builds category and global leaderboards from a result store."""

    def __init__(self, result_store: ResultStore) -> None:
        self._store = result_store

    def leaderboard(self, scope: LeaderboardScope, limit: int | None = None) -> list[LeaderboardEntry]:
        return rank(self._store.query_by_scope(scope), scope, limit)

    def category_leaderboard(
        self, category_id: int, limit: int | None = CATEGORY_LEADERBOARD_LIMIT
    ) -> list[LeaderboardEntry]:
        return self.leaderboard(LeaderboardScope.for_category(category_id), limit)

    def global_leaderboard(self, limit: int | None = GLOBAL_LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
        return self.leaderboard(LeaderboardScope.all_categories(), limit)

    def find_user_rank(self, user_id: int, scope: LeaderboardScope) -> LeaderboardEntry | None:
        """Return the user's best-placed entry in the full, unbounded ranking."""
        for entry in self.leaderboard(scope):
            if entry.result.user_id == user_id:
                return entry
        return None

    def user_history(self, user_id: int) -> list[QuizResult]:
        return self._store.query_by_user(user_id)
