"""State machine for a single timed quiz attempt."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timezone
import logging
from threading import Lock
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

from quiz_engine.core.errors import InvalidArgumentError, InvalidStateError, StorageError
from quiz_engine.core.models import (
    AnswerRecord,
    Question,
    QuestionFlag,
    QuizResult,
    SessionState,
)
from quiz_engine.core.scoring import ScoreOutcome, percentage, score_answers
from quiz_engine.core.session_clock import SessionClock

if TYPE_CHECKING:
    from quiz_engine.core.services.result_store import ResultStore

logger = logging.getLogger(__name__)

TerminalListener = Callable[[QuizResult], None]


class Clock(Protocol):
    """Countdown interface the session arms on start and cancels on submit."""

    def arm(self, duration_seconds: float, on_expire: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...

    def remaining(self) -> float: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuizSession:
    """Owns one attempt: questions, cursor, answers, countdown and final result.

    All transitions run under a single lock. ``submit`` and the clock's expiry
    race for it; the first one in finishes the session and the other receives
    ``InvalidStateError``. Persisting the result happens after the lock is
    released.
    """

    def __init__(
        self,
        user_id: int,
        category_id: int,
        *,
        result_store: ResultStore | None = None,
        clock: Clock | None = None,
        now: Callable[[], datetime] = _utc_now,
        session_id: str | None = None,
    ) -> None:
        self._lock = Lock()
        self.session_id: str = session_id or uuid4().hex
        self.user_id = user_id
        self.category_id = category_id
        self._result_store = result_store
        self._clock: Clock = clock if clock is not None else SessionClock()
        self._now = now

        self._state: SessionState = SessionState.CREATED
        self._questions: tuple[Question, ...] = ()
        self._answers: list[AnswerRecord] = []
        self._cursor: int = 0
        self._time_budget_seconds: int = 0
        self._started_at: datetime | None = None
        self._ended_at: datetime | None = None
        self._outcome: ScoreOutcome | None = None
        self._result: QuizResult | None = None
        self._last_error: Exception | None = None
        self._flags: list[QuestionFlag] = []
        self._listeners: list[TerminalListener] = []

    # --- Transitions ---

    def start(self, questions: Sequence[Question], time_budget_seconds: int) -> None:
        """Begin the attempt and arm the countdown."""
        if not questions:
            raise InvalidArgumentError("A quiz session needs at least one question.")
        if time_budget_seconds <= 0:
            raise InvalidArgumentError("Time budget must be a positive number of seconds.")

        with self._lock:
            if self._state is not SessionState.CREATED:
                raise InvalidStateError(f"Session already started (state {self._state.name}).")
            self._clock.arm(time_budget_seconds, self._on_clock_expired)
            self._questions = tuple(questions)
            self._answers = [AnswerRecord(question_index=i) for i in range(len(self._questions))]
            self._cursor = 0
            self._time_budget_seconds = time_budget_seconds
            self._started_at = self._now()
            self._state = SessionState.ACTIVE

        logger.info(
            "Session %s started for user %s: %d questions, %d seconds",
            self.session_id,
            self.user_id,
            len(questions),
            time_budget_seconds,
        )

    def record_answer(self, option_index: int) -> None:
        """Store ``option_index`` for the question under the cursor, replacing any earlier answer."""
        with self._lock:
            self._require_active()
            question = self._questions[self._cursor]
            if not 0 <= option_index < len(question.options):
                raise InvalidArgumentError(
                    f"Option index {option_index} out of range for question {question.id}."
                )
            self._answers[self._cursor].selected_option_index = option_index

    def advance(self, delta: int) -> int:
        """Move the cursor one step back (-1) or forward (+1); stops at either end."""
        if delta not in (-1, 1):
            raise InvalidArgumentError("Cursor can only move by -1 or +1.")
        with self._lock:
            self._require_active()
            last_index = len(self._questions) - 1
            self._cursor = min(max(self._cursor + delta, 0), last_index)
            return self._cursor

    def submit(self) -> QuizResult:
        """Finish the attempt on the user's request and return its result.

        Raises ``StorageError`` if the result store fails; the result stays
        available through ``result()``.
        """
        with self._lock:
            self._require_active()
            self._clock.cancel()
            result = self._finish(SessionState.SUBMITTED)
        self._publish(result)
        return self.result()

    def expire(self) -> QuizResult:
        """Finish the attempt because time ran out."""
        with self._lock:
            self._require_active()
            self._clock.cancel()
            result = self._finish(SessionState.EXPIRED)
        self._publish(result)
        return self.result()

    def flag_current_question(self, reason: str) -> QuestionFlag:
        """Report the question under the cursor for review."""
        cleaned = reason.strip()
        if not cleaned:
            raise InvalidArgumentError("A flag reason is required.")
        with self._lock:
            self._require_active()
            flag = QuestionFlag(
                question_id=self._questions[self._cursor].id,
                reason=cleaned,
                flagged_at=self._now(),
            )
            self._flags.append(flag)
        logger.info("Session %s flagged question %d", self.session_id, flag.question_id)
        return flag

    def add_terminal_listener(self, listener: TerminalListener) -> None:
        """Call ``listener`` with the result once the session ends.

        Listeners added after the session ended are called immediately.
        """
        with self._lock:
            result = self._result
            if result is None:
                self._listeners.append(listener)
                return
        listener(result)

    # --- Queries ---

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def question_count(self) -> int:
        return len(self._questions)

    @property
    def time_budget_seconds(self) -> int:
        return self._time_budget_seconds

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def ended_at(self) -> datetime | None:
        return self._ended_at

    @property
    def last_error(self) -> Exception | None:
        with self._lock:
            return self._last_error

    def is_terminal(self) -> bool:
        with self._lock:
            return self._state.is_terminal

    def current_question(self) -> Question:
        with self._lock:
            if self._state is SessionState.CREATED:
                raise InvalidStateError("Session has not started.")
            return self._questions[self._cursor]

    def answers(self) -> tuple[int, ...]:
        with self._lock:
            return tuple(record.selected_option_index for record in self._answers)

    def answered_count(self) -> int:
        with self._lock:
            return sum(1 for record in self._answers if record.is_answered)

    def remaining(self) -> float:
        if self.state in (SessionState.CREATED, SessionState.EXPIRED):
            return 0.0
        return self._clock.remaining()

    def flags(self) -> tuple[QuestionFlag, ...]:
        with self._lock:
            return tuple(self._flags)

    def result(self) -> QuizResult:
        with self._lock:
            if self._result is None:
                raise InvalidStateError("Session has not finished yet.")
            return self._result

    def score_outcome(self) -> ScoreOutcome:
        with self._lock:
            if self._outcome is None:
                raise InvalidStateError("Session has not finished yet.")
            return self._outcome

    def percentage_correct(self) -> float:
        outcome = self.score_outcome()
        return percentage(outcome.correct_count, outcome.total_questions)

    # --- Internals ---

    def _require_active(self) -> None:
        if self._state is not SessionState.ACTIVE:
            raise InvalidStateError(f"Session is not active (state {self._state.name}).")

    def _finish(self, terminal_state: SessionState) -> QuizResult:
        """Score and build the result. Caller holds the lock."""
        ended_at = self._now()
        started_at = self._started_at or ended_at
        elapsed = (ended_at - started_at).total_seconds()
        elapsed_seconds = int(min(max(elapsed, 0.0), self._time_budget_seconds))

        outcome = score_answers(
            self._questions,
            [record.selected_option_index for record in self._answers],
        )
        result = QuizResult(
            user_id=self.user_id,
            category_id=self.category_id,
            score=outcome.score,
            total_questions=len(self._questions),
            correct_count=outcome.correct_count,
            elapsed_seconds=elapsed_seconds,
            completed_at=ended_at,
        )
        self._ended_at = ended_at
        self._outcome = outcome
        self._result = result
        self._state = terminal_state
        logger.info(
            "Session %s %s: %d/%d correct, score %s, %ds elapsed",
            self.session_id,
            terminal_state.name.lower(),
            outcome.correct_count,
            len(self._questions),
            outcome.score,
            elapsed_seconds,
        )
        return result

    def _publish(self, result: QuizResult) -> None:
        """Save the result and notify listeners. Runs outside the lock."""
        error: StorageError | None = None
        if self._result_store is not None:
            try:
                result_id = self._result_store.save(result)
            except StorageError as exc:
                logger.warning("Saving result for session %s failed: %s", self.session_id, exc)
                error = exc
                with self._lock:
                    self._last_error = exc
            else:
                result = replace(result, result_id=result_id)
                with self._lock:
                    self._result = result

        with self._lock:
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(result)
            except Exception:
                logger.exception("Terminal listener failed for session %s", self.session_id)

        if error is not None:
            raise error

    def _on_clock_expired(self) -> None:
        try:
            self.expire()
        except InvalidStateError:
            logger.debug("Ignoring expiry for session %s; already finished", self.session_id)
        except Exception as exc:
            logger.exception("Expiry handling failed for session %s", self.session_id)
            with self._lock:
                self._last_error = exc

