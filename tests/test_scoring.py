import pytest

from conftest import make_question
from quiz_engine.constants.quiz_constants import UNANSWERED
from quiz_engine.core.errors import InvalidArgumentError
from quiz_engine.core.scoring import percentage, score_answers


def test_mixed_answers_score_only_exact_matches(five_questions):
    outcome = score_answers(five_questions, [0, 1, 9, UNANSWERED, 1])

    assert outcome.correct_count == 2
    assert outcome.score == 2
    assert outcome.per_question_correct == (True, True, False, False, False)
    assert outcome.total_questions == 5


def test_all_unanswered_scores_zero(five_questions):
    outcome = score_answers(five_questions, [UNANSWERED] * 5)

    assert outcome.score == 0
    assert outcome.correct_count == 0
    assert not any(outcome.per_question_correct)


def test_weighted_points_diverge_from_correct_count():
    questions = [make_question(1, 0, points=3), make_question(2, 1, points=1), make_question(3, 2, points=5)]

    outcome = score_answers(questions, [0, 0, 2])

    assert outcome.correct_count == 2
    assert outcome.score == 8


def test_integer_weights_keep_integer_score(five_questions):
    outcome = score_answers(five_questions, [0, 1, 2, 3, 0])

    assert outcome.score == 5
    assert isinstance(outcome.score, int)


def test_fractional_weights_sum_in_question_order():
    questions = [make_question(1, 0, points=0.1), make_question(2, 0, points=0.2), make_question(3, 0, points=0.3)]

    outcome = score_answers(questions, [0, 0, 0])

    assert outcome.score == (0 + 0.1) + 0.2 + 0.3


def test_scoring_is_deterministic(five_questions):
    answers = [0, 2, 2, UNANSWERED, 0]

    assert score_answers(five_questions, answers) == score_answers(five_questions, answers)


def test_answer_count_must_match_question_count(five_questions):
    with pytest.raises(InvalidArgumentError):
        score_answers(five_questions, [0, 1])


def test_percentage_guards_zero_denominator():
    assert percentage(3, 0) == 0.0
    assert percentage(4, 5) == pytest.approx(80.0)
