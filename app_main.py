"""Application entry point for the QuizEngine HTTP host."""

from __future__ import annotations

from pathlib import Path
import sys

from quiz_engine.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_engine.core.engine import QuizEngine
from quiz_engine.core.question_bank import QuestionBankError, load_question_bank
from quiz_engine.core.services.question_source import InMemoryQuestionSource
from quiz_engine.core.services.result_store import SqliteResultStore
from quiz_engine.server.api_server import start_api_server
from quiz_engine.utils.logging_config import configure_logging

_DEFAULT_DATABASE = "quiz_results.db"


def main(argv: list[str] | None = None) -> None:
    """Load a question bank, open the result database and serve the API.

    Usage: ``python app_main.py QUESTION_BANK.txt [RESULTS.db]``
    """
    args = sys.argv[1:] if argv is None else argv
    logger = configure_logging()
    if not args:
        logger.error("Usage: app_main.py QUESTION_BANK.txt [RESULTS.db]")
        sys.exit(2)

    bank_path = Path(args[0])
    try:
        bank = load_question_bank(bank_path, default_category_id=1)
    except (OSError, QuestionBankError) as exc:
        logger.error("Could not load question bank %s: %s", bank_path, exc)
        sys.exit(1)
    logger.info("Loaded %d questions from %s", len(bank.questions), bank_path)

    database = args[1] if len(args) > 1 else _DEFAULT_DATABASE
    engine = QuizEngine(
        InMemoryQuestionSource.from_question_bank(bank),
        SqliteResultStore(database),
    )
    logger.info("Starting QuizEngine API on %s:%d", DEFAULT_HOST, DEFAULT_PORT)
    server_thread = start_api_server(engine=engine, host=DEFAULT_HOST, port=DEFAULT_PORT)
    server_thread.join()


if __name__ == "__main__":
    main()
