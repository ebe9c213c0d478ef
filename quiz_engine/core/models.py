"""Domain models for the quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto

from quiz_engine.constants.quiz_constants import DEFAULT_POINT_VALUE, UNANSWERED


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question with two to four options."""

    id: int
    category_id: int
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    point_value: float = DEFAULT_POINT_VALUE
    difficulty: str | None = None


@dataclass(frozen=True, slots=True)
class Category:
    """Quiz category. Subcategories sit directly below a top-level parent."""

    id: int
    name: str
    parent_id: int | None = None
    time_per_question_seconds: int | None = None
    total_time_seconds: int | None = None

    @property
    def is_subcategory(self) -> bool:
        return self.parent_id is not None


@dataclass(slots=True)
class AnswerRecord:
    """Selected option for one question slot of a session."""

    question_index: int
    selected_option_index: int = UNANSWERED

    @property
    def is_answered(self) -> bool:
        return self.selected_option_index != UNANSWERED


class SessionState(Enum):
    """Lifecycle states of a quiz session, in transition order."""

    CREATED = auto()
    ACTIVE = auto()
    EXPIRED = auto()
    SUBMITTED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.EXPIRED, SessionState.SUBMITTED)


@dataclass(frozen=True, slots=True)
class QuizResult:
    """Immutable outcome of a finished session.

    ``result_id`` is assigned by the result store and the display labels are
    filled in by stores that join against user and category tables; none of
    them take part in equality.
    """

    user_id: int
    category_id: int
    score: float
    total_questions: int
    correct_count: int
    elapsed_seconds: int
    completed_at: datetime
    result_id: int | None = field(default=None, compare=False)
    username: str | None = field(default=None, compare=False)
    category_name: str | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    """Ranked view of a stored result."""

    rank: int
    result: QuizResult
    percentage: float


@dataclass(frozen=True, slots=True)
class LeaderboardScope:
    """Leaderboard filter: one category, or every category when ``category_id`` is None."""

    category_id: int | None = None

    @classmethod
    def all_categories(cls) -> LeaderboardScope:
        return cls(category_id=None)

    @classmethod
    def for_category(cls, category_id: int) -> LeaderboardScope:
        return cls(category_id=category_id)

    @property
    def is_global(self) -> bool:
        return self.category_id is None

    def matches(self, result: QuizResult) -> bool:
        return self.category_id is None or result.category_id == self.category_id


@dataclass(frozen=True, slots=True)
class QuestionFlag:
    """A question reported for review during a session."""

    question_id: int
    reason: str
    flagged_at: datetime
