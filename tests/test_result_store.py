from datetime import datetime, timedelta, timezone

import pytest

from quiz_engine.core.errors import StorageError
from quiz_engine.core.models import LeaderboardScope, QuizResult
from quiz_engine.core.services.result_store import InMemoryResultStore, SqliteResultStore

COMPLETED = datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)


def _result(user_id=1, category_id=1, score=3, completed_at=COMPLETED):
    return QuizResult(
        user_id=user_id,
        category_id=category_id,
        score=score,
        total_questions=5,
        correct_count=3,
        elapsed_seconds=45,
        completed_at=completed_at,
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryResultStore()
        return
    sqlite_store = SqliteResultStore(tmp_path / "results.db")
    yield sqlite_store
    sqlite_store.close()


def test_saved_result_comes_back_from_scope_query(store):
    result = _result(category_id=4)

    result_id = store.save(result)
    loaded = store.query_by_scope(LeaderboardScope.for_category(4))

    assert loaded == [result]
    assert loaded[0].result_id == result_id


def test_ids_are_sequential_and_scope_keeps_insertion_order(store):
    first = store.save(_result(user_id=1, category_id=1))
    second = store.save(_result(user_id=2, category_id=2))
    third = store.save(_result(user_id=3, category_id=1))

    assert [first, second, third] == [1, 2, 3]
    assert [r.user_id for r in store.query_by_scope(LeaderboardScope.all_categories())] == [1, 2, 3]
    assert [r.user_id for r in store.query_by_scope(LeaderboardScope.for_category(1))] == [1, 3]


def test_user_history_is_newest_first(store):
    store.save(_result(user_id=5, completed_at=COMPLETED))
    store.save(_result(user_id=5, completed_at=COMPLETED + timedelta(days=1), score=4))
    store.save(_result(user_id=6))

    history = store.query_by_user(5)

    assert [r.score for r in history] == [4, 3]


def test_fractional_scores_survive_sqlite(tmp_path):
    sqlite_store = SqliteResultStore(tmp_path / "results.db")
    result = _result(score=2.5)

    sqlite_store.save(result)

    assert sqlite_store.query_by_scope(LeaderboardScope.all_categories()) == [result]
    sqlite_store.close()


def test_sqlite_failures_become_storage_errors(tmp_path):
    sqlite_store = SqliteResultStore(tmp_path / "results.db")
    sqlite_store.close()

    with pytest.raises(StorageError):
        sqlite_store.save(_result())
    with pytest.raises(StorageError):
        sqlite_store.query_by_scope(LeaderboardScope.all_categories())


def test_unopenable_database_raises_storage_error(tmp_path):
    with pytest.raises(StorageError):
        SqliteResultStore(tmp_path / "missing" / "results.db")
