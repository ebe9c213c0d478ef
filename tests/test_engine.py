import pytest

from conftest import FakeNow, ManualClock, make_question
from quiz_engine.core.engine import QuizEngine, resolve_time_budget
from quiz_engine.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from quiz_engine.core.models import Category, SessionState
from quiz_engine.core.services.question_source import InMemoryQuestionSource
from quiz_engine.core.services.result_store import InMemoryResultStore


@pytest.fixture
def clocks():
    return []


@pytest.fixture
def engine(clocks):
    categories = [
        Category(id=1, name="Math", total_time_seconds=90),
        Category(id=2, name="Geography", time_per_question_seconds=20),
        Category(id=3, name="Empty"),
    ]
    questions = [make_question(i, 1, category_id=1) for i in range(1, 4)]
    questions += [make_question(i, 0, category_id=2) for i in range(10, 16)]
    source = InMemoryQuestionSource(questions=questions, categories=categories, seed=1)

    def clock_factory():
        clock = ManualClock()
        clocks.append(clock)
        return clock

    return QuizEngine(source, InMemoryResultStore(), clock_factory=clock_factory, now=FakeNow())


def test_time_budget_resolution():
    assert resolve_time_budget(Category(id=1, name="a", total_time_seconds=90), 5) == 90
    assert resolve_time_budget(Category(id=1, name="a", time_per_question_seconds=20), 5) == 100
    assert resolve_time_budget(Category(id=1, name="a"), 5) == 120


def test_begin_attempt_uses_category_settings(engine, clocks):
    session = engine.begin_attempt(user_id=1, category_id=2, question_count=4)

    assert session.state is SessionState.ACTIVE
    assert session.question_count == 4
    assert session.time_budget_seconds == 80
    assert clocks[0].duration == 80
    assert engine.get_session(session.session_id) is session


def test_explicit_time_budget_overrides_category(engine, clocks):
    session = engine.begin_attempt(user_id=1, category_id=1, time_budget_seconds=45)

    assert session.time_budget_seconds == 45
    assert clocks[0].duration == 45


@pytest.mark.parametrize("budget", [0, -10])
def test_explicit_non_positive_time_budget_is_rejected(engine, budget):
    with pytest.raises(InvalidArgumentError):
        engine.begin_attempt(user_id=1, category_id=1, time_budget_seconds=budget)

    assert engine.active_session_count() == 0


def test_short_category_is_accepted(engine):
    session = engine.begin_attempt(user_id=1, category_id=1, question_count=5)

    assert session.question_count == 3
    assert session.time_budget_seconds == 90


def test_unknown_or_empty_category_is_not_found(engine):
    with pytest.raises(NotFoundError):
        engine.begin_attempt(user_id=1, category_id=99)
    with pytest.raises(NotFoundError):
        engine.begin_attempt(user_id=1, category_id=3)


def test_sessions_are_independent(engine):
    first = engine.begin_attempt(user_id=1, category_id=2)
    second = engine.begin_attempt(user_id=2, category_id=2)

    engine.record_answer(first.session_id, 0)
    engine.submit(first.session_id)

    assert first.is_terminal()
    assert not second.is_terminal()
    assert second.answered_count() == 0
    assert engine.active_session_count() == 1


def test_attempt_flow_feeds_leaderboard(engine, clocks):
    winner = engine.begin_attempt(user_id=1, category_id=1)
    for _ in range(winner.question_count):
        engine.record_answer(winner.session_id, 1)
        engine.advance(winner.session_id, +1)
    engine.submit(winner.session_id)

    loser = engine.begin_attempt(user_id=2, category_id=1)
    clocks[-1].fire()

    board = engine.category_leaderboard(1)
    assert [entry.result.user_id for entry in board] == [1, 2]
    assert board[0].result.score == 3
    assert loser.state is SessionState.EXPIRED
    assert engine.find_user_rank(2, category_id=1).rank == 2
    assert [r.user_id for r in engine.user_history(1)] == [1]
    assert len(engine.global_leaderboard()) == 2


def test_discard_requires_finished_session(engine):
    session = engine.begin_attempt(user_id=1, category_id=2)

    with pytest.raises(InvalidStateError):
        engine.discard_session(session.session_id)
    engine.submit(session.session_id)
    engine.discard_session(session.session_id)

    with pytest.raises(NotFoundError):
        engine.get_session(session.session_id)


def test_category_tree_nests_subcategories():
    source = InMemoryQuestionSource(
        questions=[make_question(1, 0, category_id=2), make_question(2, 0, category_id=4)],
        categories=[Category(id=1, name="Science"), Category(id=4, name="History"), Category(id=5, name="Art")],
    )
    source.add_category(Category(id=2, name="Physics", parent_id=1))
    source.add_category(Category(id=3, name="Biology", parent_id=1))
    engine = QuizEngine(source, InMemoryResultStore(), clock_factory=ManualClock)

    full = engine.category_tree()
    populated = engine.category_tree(with_questions_only=True)

    assert [(parent.id, [child.id for child in children]) for parent, children in full] == [
        (1, [2, 3]),
        (4, []),
        (5, []),
    ]
    assert [(parent.id, [child.id for child in children]) for parent, children in populated] == [
        (1, [2]),
        (4, []),
    ]
