from datetime import datetime, timedelta, timezone
from pathlib import Path

from quiz_engine.core.engine import QuizEngine
from quiz_engine.core.models import SessionState
from quiz_engine.core.question_bank import load_question_bank
from quiz_engine.core.services.question_source import InMemoryQuestionSource
from quiz_engine.core.services.result_store import InMemoryResultStore


def test_full_attempt():
    print("Loading question bank...")
    bank = load_question_bank(Path(__file__).resolve().parent / "sample_question_bank.txt")
    source = InMemoryQuestionSource.from_question_bank(bank, seed=7)
    store = InMemoryResultStore()
    clock_start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = iter([clock_start, clock_start + timedelta(seconds=42)])
    engine = QuizEngine(source, store, now=lambda: next(ticks))
    print(f"Loaded {len(bank.questions)} questions.")

    # 1. Start
    print("Starting attempt...")
    session = engine.begin_attempt(user_id=1, category_id=1, question_count=5)
    assert session.state is SessionState.ACTIVE
    assert session.question_count == 3
    print(f"Attempt {session.session_id} started with {session.question_count} questions.")

    # 2. Answer every question correctly
    print("Answering questions...")
    for _ in range(session.question_count):
        question = session.current_question()
        session.record_answer(question.correct_option_index)
        session.advance(+1)
    assert session.answered_count() == 3

    # 3. Submit
    print("Submitting...")
    result = session.submit()
    assert session.is_terminal()
    assert result.correct_count == 3
    assert result.score == 4
    assert result.elapsed_seconds == 42
    assert result.result_id == 1
    print(f"Scored {result.score} with {result.correct_count}/{result.total_questions} correct.")

    # 4. Leaderboard
    print("Checking leaderboard...")
    board = engine.category_leaderboard(1)
    assert len(board) == 1
    assert board[0].rank == 1
    assert board[0].result == result
    print("Leaderboard updated.")

    print("\nSUCCESS: Session verification passed!")


if __name__ == "__main__":
    test_full_attempt()
