"""FastAPI server that exposes quiz sessions and leaderboards."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Thread

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from quiz_engine.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from quiz_engine.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_engine.constants.quiz_constants import (
    CATEGORY_LEADERBOARD_LIMIT,
    DEFAULT_QUESTION_COUNT,
    GLOBAL_LEADERBOARD_LIMIT,
)
from quiz_engine.core.engine import QuizEngine
from quiz_engine.core.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    QuizEngineError,
    StorageError,
)
from quiz_engine.core.markdown_renderer import renderer
from quiz_engine.core.models import Category, LeaderboardEntry, QuizResult
from quiz_engine.core.quiz_session import QuizSession
from quiz_engine.core.session_clock import format_remaining

_STATUS_BY_ERROR: list[tuple[type[QuizEngineError], int]] = [
    (InvalidArgumentError, 422),
    (InvalidStateError, 409),
    (NotFoundError, 404),
    (StorageError, 503),
]


class StartSessionPayload(BaseModel):
    """Payload schema for starting an attempt."""

    user_id: int
    category_id: int
    question_count: int = Field(default=DEFAULT_QUESTION_COUNT, gt=0)
    difficulty: str | None = None


class AnswerPayload(BaseModel):
    """Payload schema for answering the current question."""

    selected_option_index: int


class AdvancePayload(BaseModel):
    """Payload schema for moving the question cursor."""

    delta: int


class FlagPayload(BaseModel):
    """Payload schema for reporting a question."""

    reason: str


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.astimezone(timezone.utc).isoformat()


def _status_for(exc: QuizEngineError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _session_payload(session: QuizSession) -> dict[str, object]:
    remaining = session.remaining()
    last_error = session.last_error
    return {
        "session_id": session.session_id,
        "user_id": session.user_id,
        "category_id": session.category_id,
        "state": session.state.name.lower(),
        "is_terminal": session.is_terminal(),
        "cursor": session.cursor,
        "question_count": session.question_count,
        "answered_count": session.answered_count(),
        "time_budget_seconds": session.time_budget_seconds,
        "remaining_seconds": remaining,
        "remaining_display": format_remaining(remaining),
        "started_at": _iso(session.started_at),
        "last_error": str(last_error) if last_error is not None else None,
    }


def _category_payload(category: Category) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "parent_id": category.parent_id,
        "time_per_question_seconds": category.time_per_question_seconds,
        "total_time_seconds": category.total_time_seconds,
    }


def _result_payload(result: QuizResult) -> dict[str, object]:
    return {
        "result_id": result.result_id,
        "user_id": result.user_id,
        "category_id": result.category_id,
        "score": result.score,
        "total_questions": result.total_questions,
        "correct_count": result.correct_count,
        "elapsed_seconds": result.elapsed_seconds,
        "completed_at": _iso(result.completed_at),
    }


def _entry_payload(entry: LeaderboardEntry) -> dict[str, object]:
    payload = _result_payload(entry.result)
    payload["rank"] = entry.rank
    payload["percentage"] = round(entry.percentage, 1)
    payload["username"] = entry.result.username
    return payload


def _get_engine_dependency(engine: QuizEngine):
    def dependency() -> QuizEngine:
        return engine

    return dependency


def create_api_app(engine: QuizEngine) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz engine."""
    app = FastAPI(title=f"{APP_NAME} API", description=APP_ABOUT_TEXT, version=APP_VERSION)
    engine_dep = _get_engine_dependency(engine)

    @app.exception_handler(QuizEngineError)
    def handle_engine_error(request: Request, exc: QuizEngineError) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})

    @app.get("/categories")
    def get_categories(
        with_questions_only: bool = False,
        manager: QuizEngine = Depends(engine_dep),
    ) -> list[dict[str, object]]:
        categories = []
        for parent, children in manager.category_tree(with_questions_only):
            payload = _category_payload(parent)
            payload["subcategories"] = [_category_payload(child) for child in children]
            categories.append(payload)
        return categories

    @app.post("/sessions", status_code=201)
    def start_session(
        payload: StartSessionPayload,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        session = manager.begin_attempt(
            payload.user_id,
            payload.category_id,
            question_count=payload.question_count,
            difficulty=payload.difficulty,
        )
        return _session_payload(session)

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        return _session_payload(manager.get_session(session_id))

    @app.delete("/sessions/{session_id}", status_code=204)
    def discard_session(session_id: str, manager: QuizEngine = Depends(engine_dep)) -> Response:
        manager.discard_session(session_id)
        return Response(status_code=204)

    @app.get("/sessions/{session_id}/question")
    def get_question(session_id: str, manager: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        session = manager.get_session(session_id)
        question = session.current_question()
        cursor = session.cursor
        prompt_html, options_html = renderer.render_question(question)
        # Correct answer is only revealed once the attempt is over.
        correct_index = question.correct_option_index if session.is_terminal() else None
        return {
            "question_id": question.id,
            "position": cursor + 1,
            "question_count": session.question_count,
            "question_html": prompt_html,
            "options": list(question.options),
            "options_html": options_html,
            "point_value": question.point_value,
            "difficulty": question.difficulty,
            "selected_option_index": session.answers()[cursor],
            "correct_option_index": correct_index,
        }

    @app.post("/sessions/{session_id}/answer")
    def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        manager.record_answer(session_id, payload.selected_option_index)
        return _session_payload(manager.get_session(session_id))

    @app.post("/sessions/{session_id}/advance")
    def advance(
        session_id: str,
        payload: AdvancePayload,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        manager.advance(session_id, payload.delta)
        return _session_payload(manager.get_session(session_id))

    @app.post("/sessions/{session_id}/flag", status_code=201)
    def flag_question(
        session_id: str,
        payload: FlagPayload,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        flag = manager.flag_question(session_id, payload.reason)
        return {
            "question_id": flag.question_id,
            "reason": flag.reason,
            "flagged_at": _iso(flag.flagged_at),
        }

    @app.post("/sessions/{session_id}/submit")
    def submit_session(session_id: str, manager: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        return _result_payload(manager.submit(session_id))

    @app.get("/sessions/{session_id}/result")
    def get_result(session_id: str, manager: QuizEngine = Depends(engine_dep)) -> dict[str, object]:
        session = manager.get_session(session_id)
        payload = _result_payload(session.result())
        outcome = session.score_outcome()
        payload["state"] = session.state.name.lower()
        payload["per_question_correct"] = list(outcome.per_question_correct)
        payload["percentage"] = round(session.percentage_correct(), 1)
        return payload

    @app.get("/leaderboard")
    def get_leaderboard(
        category_id: int | None = None,
        limit: int | None = None,
        manager: QuizEngine = Depends(engine_dep),
    ) -> list[dict[str, object]]:
        if category_id is None:
            entries = manager.global_leaderboard(GLOBAL_LEADERBOARD_LIMIT if limit is None else limit)
        else:
            entries = manager.category_leaderboard(
                category_id, CATEGORY_LEADERBOARD_LIMIT if limit is None else limit
            )
        return [_entry_payload(entry) for entry in entries]

    @app.get("/users/{user_id}/results")
    def get_user_results(user_id: int, manager: QuizEngine = Depends(engine_dep)) -> list[dict[str, object]]:
        return [_result_payload(result) for result in manager.user_history(user_id)]

    @app.get("/users/{user_id}/rank")
    def get_user_rank(
        user_id: int,
        category_id: int | None = None,
        manager: QuizEngine = Depends(engine_dep),
    ) -> dict[str, object]:
        entry = manager.find_user_rank(user_id, category_id)
        if entry is None:
            raise NotFoundError(f"User {user_id} has no ranked results.")
        return _entry_payload(entry)

    return app


def start_api_server(
    engine: QuizEngine,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(engine)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
