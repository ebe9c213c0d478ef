"""Result stores that persist finished quiz sessions."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import logging
from pathlib import Path
import sqlite3
from threading import Lock
from typing import Protocol

from quiz_engine.core.errors import StorageError
from quiz_engine.core.models import LeaderboardScope, QuizResult

logger = logging.getLogger(__name__)


class ResultStore(Protocol):
    """Persistence boundary for immutable quiz results."""

    def save(self, result: QuizResult) -> int:
        """Persist ``result`` and return its store-assigned identifier."""
        ...

    def query_by_scope(self, scope: LeaderboardScope) -> list[QuizResult]:
        """Return the results in ``scope`` in insertion order."""
        ...

    def query_by_user(self, user_id: int) -> list[QuizResult]:
        """Return one user's results, newest first."""
        ...


class InMemoryResultStore:
    """Thread-safe result store kept in a list."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._results: list[QuizResult] = []
        self._result_counter: int = 0

    def save(self, result: QuizResult) -> int:
        with self._lock:
            self._result_counter += 1
            self._results.append(replace(result, result_id=self._result_counter))
            return self._result_counter

    def query_by_scope(self, scope: LeaderboardScope) -> list[QuizResult]:
        with self._lock:
            return [result for result in self._results if scope.matches(result)]

    def query_by_user(self, user_id: int) -> list[QuizResult]:
        with self._lock:
            history = [result for result in self._results if result.user_id == user_id]
        return sorted(history, key=lambda r: r.completed_at, reverse=True)


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS quiz_results (
    result_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    category_id INTEGER NOT NULL,
    score REAL NOT NULL,
    total_questions INTEGER NOT NULL,
    correct_count INTEGER NOT NULL,
    elapsed_seconds INTEGER NOT NULL,
    completed_at TEXT NOT NULL,
    username TEXT,
    category_name TEXT
)
"""

_INSERT_RESULT = """
INSERT INTO quiz_results (
    user_id, category_id, score, total_questions, correct_count,
    elapsed_seconds, completed_at, username, category_name
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_ALL = "SELECT * FROM quiz_results ORDER BY result_id ASC"
_SELECT_BY_CATEGORY = "SELECT * FROM quiz_results WHERE category_id = ? ORDER BY result_id ASC"
_SELECT_BY_USER = (
    "SELECT * FROM quiz_results WHERE user_id = ? ORDER BY completed_at DESC, result_id DESC"
)


class SqliteResultStore:
    """Result store backed by a ``quiz_results`` table in SQLite."""

    def __init__(self, database: str | Path = ":memory:") -> None:
        self._lock = Lock()
        try:
            self._conn = sqlite3.connect(str(database), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            with self._conn:
                self._conn.execute(_CREATE_TABLE)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open result database {database}: {exc}") from exc

    def save(self, result: QuizResult) -> int:
        params = (
            result.user_id,
            result.category_id,
            result.score,
            result.total_questions,
            result.correct_count,
            result.elapsed_seconds,
            result.completed_at.isoformat(),
            result.username,
            result.category_name,
        )
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(_INSERT_RESULT, params)
            except sqlite3.Error as exc:
                raise StorageError(f"Error creating quiz result: {exc}") from exc
        if cursor.lastrowid is None:
            raise StorageError("Creating quiz result failed, no ID obtained.")
        logger.debug("Stored result %d for user %d", cursor.lastrowid, result.user_id)
        return cursor.lastrowid

    def query_by_scope(self, scope: LeaderboardScope) -> list[QuizResult]:
        if scope.is_global:
            return self._query(_SELECT_ALL, ())
        return self._query(_SELECT_BY_CATEGORY, (scope.category_id,))

    def query_by_user(self, user_id: int) -> list[QuizResult]:
        return self._query(_SELECT_BY_USER, (user_id,))

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _query(self, sql: str, params: tuple[object, ...]) -> list[QuizResult]:
        with self._lock:
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(f"Error loading quiz results: {exc}") from exc
        return [self._row_to_result(row) for row in rows]

    @staticmethod
    def _row_to_result(row: sqlite3.Row) -> QuizResult:
        score = row["score"]
        if float(score).is_integer():
            score = int(score)
        return QuizResult(
            user_id=row["user_id"],
            category_id=row["category_id"],
            score=score,
            total_questions=row["total_questions"],
            correct_count=row["correct_count"],
            elapsed_seconds=row["elapsed_seconds"],
            completed_at=datetime.fromisoformat(row["completed_at"]),
            result_id=row["result_id"],
            username=row["username"],
            category_name=row["category_name"],
        )
