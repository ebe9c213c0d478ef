"""Question sources that supply the question sample for a session."""

from __future__ import annotations

from collections.abc import Iterable
import logging
import random
from threading import Lock
from typing import Protocol

from quiz_engine.constants.quiz_constants import MAX_OPTION_COUNT, MIN_OPTION_COUNT
from quiz_engine.core.errors import InvalidArgumentError, NotFoundError
from quiz_engine.core.models import Category, Question
from quiz_engine.core.question_bank import QuestionBank

logger = logging.getLogger(__name__)


class QuestionSource(Protocol):
    """Supplies categories and an ordered, size-bounded sample of questions."""

    def get_category(self, category_id: int) -> Category:
        """Return the category; raise ``NotFoundError`` if it does not exist."""
        ...

    def list_categories(self, with_questions_only: bool = False) -> list[Category]:
        """Return every category ordered by id, optionally only those holding questions."""
        ...

    def get_subcategories(self, parent_id: int) -> list[Category]:
        ...

    def fetch(self, category_id: int, count: int, difficulty: str | None = None) -> list[Question]:
        """Return at most ``count`` questions; raise ``NotFoundError`` if there are none."""
        ...


class InMemoryQuestionSource:
    """Validated question and category catalog held in memory."""

    def __init__(
        self,
        questions: Iterable[Question] = (),
        categories: Iterable[Category] = (),
        seed: int | None = None,
    ) -> None:
        self._lock = Lock()
        self._questions: dict[int, list[Question]] = {}
        self._categories: dict[int, Category] = {}
        self._rng = random.Random(seed)
        for category in categories:
            self.add_category(category)
        for question in questions:
            self.add_question(question)

    @classmethod
    def from_question_bank(
        cls,
        bank: QuestionBank,
        categories: Iterable[Category] = (),
        seed: int | None = None,
    ) -> InMemoryQuestionSource:
        """Build a source from a parsed bank, adding placeholder categories for unknown ids."""
        known = list(categories)
        known_ids = {category.id for category in known}
        for category_id in sorted(bank.category_ids() - known_ids):
            known.append(Category(id=category_id, name=f"Category {category_id}"))
        return cls(questions=bank.questions, categories=known, seed=seed)

    def add_category(self, category: Category) -> None:
        with self._lock:
            if category.parent_id is not None:
                parent = self._categories.get(category.parent_id)
                if parent is None:
                    raise NotFoundError(f"Parent category {category.parent_id} not found.")
                if parent.parent_id is not None:
                    raise InvalidArgumentError("Categories can only be nested one level deep.")
            self._categories[category.id] = category

    def get_category(self, category_id: int) -> Category:
        with self._lock:
            category = self._categories.get(category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found.")
        return category

    def list_categories(self, with_questions_only: bool = False) -> list[Category]:
        with self._lock:
            categories = sorted(self._categories.values(), key=lambda c: c.id)
            if with_questions_only:
                categories = [c for c in categories if self._questions.get(c.id)]
        return categories

    def get_subcategories(self, parent_id: int) -> list[Category]:
        with self._lock:
            return [c for c in self._categories.values() if c.parent_id == parent_id]

    def add_question(self, question: Question) -> None:
        prepared = self._prepare_question(question)
        with self._lock:
            self._questions.setdefault(prepared.category_id, []).append(prepared)

    def question_count(self, category_id: int) -> int:
        with self._lock:
            return len(self._questions.get(category_id, []))

    def fetch(self, category_id: int, count: int, difficulty: str | None = None) -> list[Question]:
        """Return up to ``count`` shuffled questions from ``category_id``.

        With a ``difficulty`` the pool is narrowed to matching questions,
        falling back to the whole category when none match.
        """
        if count <= 0:
            raise InvalidArgumentError("Question count must be positive.")
        with self._lock:
            pool = list(self._questions.get(category_id, []))
            if not pool:
                raise NotFoundError(f"Category {category_id} has no questions.")
            if difficulty:
                matching = [
                    q for q in pool if q.difficulty and q.difficulty.lower() == difficulty.lower()
                ]
                if matching:
                    pool = matching
                else:
                    logger.info(
                        "No %s questions in category %d; using all difficulties",
                        difficulty,
                        category_id,
                    )
            self._rng.shuffle(pool)
        return pool[:count]

    @staticmethod
    def _prepare_question(question: Question) -> Question:
        """Validate and normalize a question before storage."""
        cleaned_prompt = question.prompt.strip()
        if not cleaned_prompt:
            raise InvalidArgumentError("Question prompt must not be empty.")

        if not MIN_OPTION_COUNT <= len(question.options) <= MAX_OPTION_COUNT:
            raise InvalidArgumentError(
                f"Each question must have between {MIN_OPTION_COUNT} and {MAX_OPTION_COUNT} options."
            )
        options = tuple(option.strip() for option in question.options)
        if any(not option for option in options):
            raise InvalidArgumentError("Option text cannot be empty.")

        if not 0 <= question.correct_option_index < len(options):
            raise InvalidArgumentError(
                f"Correct option index must be between 0 and {len(options) - 1}."
            )
        if question.point_value <= 0:
            raise InvalidArgumentError("Point value must be positive.")

        return Question(
            id=question.id,
            category_id=question.category_id,
            prompt=cleaned_prompt,
            options=options,
            correct_option_index=question.correct_option_index,
            point_value=question.point_value,
            difficulty=question.difficulty,
        )
