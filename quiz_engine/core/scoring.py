"""Scoring policy for completed answer sets."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from quiz_engine.constants.quiz_constants import UNANSWERED
from quiz_engine.core.errors import InvalidArgumentError
from quiz_engine.core.models import Question


@dataclass(frozen=True, slots=True)
class ScoreOutcome:
    """Score, unweighted correct count and per-question correctness."""

    score: float
    correct_count: int
    per_question_correct: tuple[bool, ...]

    @property
    def total_questions(self) -> int:
        return len(self.per_question_correct)


def score_answers(questions: Sequence[Question], answers: Sequence[int]) -> ScoreOutcome:
    """Score ``answers`` (selected option indexes, ``UNANSWERED`` for blanks).

    Wrong and unanswered slots both earn nothing; there is no negative marking.
    Points are summed in question order so fractional weights always produce
    the same total.
    """
    if len(questions) != len(answers):
        raise InvalidArgumentError(
            f"Expected {len(questions)} answers, got {len(answers)}."
        )

    score: float = 0
    flags: list[bool] = []
    for question, selected in zip(questions, answers):
        is_correct = selected != UNANSWERED and selected == question.correct_option_index
        flags.append(is_correct)
        if is_correct:
            score += question.point_value

    return ScoreOutcome(
        score=score,
        correct_count=sum(flags),
        per_question_correct=tuple(flags),
    )


def percentage(value: float, maximum: float) -> float:
    """Return ``value`` as a percentage of ``maximum``, or 0.0 when ``maximum`` is 0."""
    if maximum == 0:
        return 0.0
    return (value / maximum) * 100
