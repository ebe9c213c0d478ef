from datetime import datetime, timedelta, timezone

import pytest

from quiz_engine.core.errors import InvalidStateError
from quiz_engine.core.models import Question


class ManualClock:
    """Clock double whose expiry is fired by the test."""

    def __init__(self):
        self.armed = False
        self.duration = None
        self.on_expire = None
        self.cancel_calls = 0
        self._remaining = 0.0

    def arm(self, duration_seconds, on_expire):
        if self.armed:
            raise InvalidStateError("already armed")
        self.armed = True
        self.duration = duration_seconds
        self._remaining = float(duration_seconds)
        self.on_expire = on_expire

    def cancel(self):
        self.cancel_calls += 1
        self.armed = False

    def remaining(self):
        return self._remaining if self.armed else 0.0

    def tick(self, seconds):
        self._remaining = max(0.0, self._remaining - seconds)

    def fire(self):
        self.armed = False
        self.on_expire()


class FakeNow:
    """Controllable time source for session timestamps."""

    def __init__(self, start=None):
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current = self.current + timedelta(seconds=seconds)


class FailingStore:
    """Result store whose saves always fail."""

    def __init__(self, error):
        self.error = error
        self.attempts = 0

    def save(self, result):
        self.attempts += 1
        raise self.error

    def query_by_scope(self, scope):
        return []

    def query_by_user(self, user_id):
        return []


def make_question(question_id, correct_option_index, options=4, points=1, category_id=1, difficulty=None):
    return Question(
        id=question_id,
        category_id=category_id,
        prompt=f"Question {question_id}",
        options=tuple(f"Option {i}" for i in range(options)),
        correct_option_index=correct_option_index,
        point_value=points,
        difficulty=difficulty,
    )


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def fake_now():
    return FakeNow()


@pytest.fixture
def five_questions():
    return [make_question(i + 1, correct) for i, correct in enumerate([0, 1, 2, 3, 0])]
