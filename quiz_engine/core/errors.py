"""Exception types raised by the quiz engine."""

from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for all quiz engine errors."""


class InvalidArgumentError(QuizEngineError, ValueError):
    """Raised for bad construction parameters or out-of-range input."""


class InvalidStateError(QuizEngineError, RuntimeError):
    """Raised when an operation is attempted in a state that forbids it."""


class NotFoundError(QuizEngineError, LookupError):
    """Raised when a category, question set or session cannot be found."""


class StorageError(QuizEngineError):
    """Raised when a result store fails to persist or load results."""
