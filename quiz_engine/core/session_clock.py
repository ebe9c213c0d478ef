"""Cancellable countdown that delivers a single expiry signal."""

from __future__ import annotations

from collections.abc import Callable
import logging
import math
from threading import Lock, Timer
import time

from quiz_engine.core.errors import InvalidArgumentError, InvalidStateError

logger = logging.getLogger(__name__)


class SessionClock:
    """Countdown backed by a ``threading.Timer``.

    Every ``arm`` starts a new generation. The timer thread only invokes the
    expiry callback if its generation is still the armed one when it takes the
    lock, so once ``cancel`` has returned the callback can no longer fire.
    """

    def __init__(self, time_source: Callable[[], float] = time.monotonic) -> None:
        self._lock = Lock()
        self._time_source = time_source
        self._timer: Timer | None = None
        self._generation: int = 0
        self._armed: bool = False
        self._expired: bool = False
        self._deadline: float = 0.0
        self._frozen_remaining: float = 0.0
        self._on_expire: Callable[[], None] | None = None

    def arm(self, duration_seconds: float, on_expire: Callable[[], None]) -> None:
        """Start counting down ``duration_seconds`` and call ``on_expire`` once at zero."""
        if duration_seconds <= 0:
            raise InvalidArgumentError("Clock duration must be positive.")
        with self._lock:
            if self._armed:
                raise InvalidStateError("Clock is already armed.")
            self._generation += 1
            self._armed = True
            self._expired = False
            self._on_expire = on_expire
            self._deadline = self._time_source() + duration_seconds
            timer = Timer(duration_seconds, self._fire, args=(self._generation,))
            timer.name = f"SessionClock-{self._generation}"
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        """Stop the countdown. Does nothing when the clock is not armed."""
        with self._lock:
            if not self._armed:
                return
            self._frozen_remaining = max(0.0, self._deadline - self._time_source())
            self._armed = False
            self._generation += 1
            timer, self._timer = self._timer, None
            self._on_expire = None
        if timer is not None:
            timer.cancel()

    def remaining(self) -> float:
        """Seconds left on the countdown, never negative."""
        with self._lock:
            if self._armed:
                return max(0.0, self._deadline - self._time_source())
            if self._expired:
                return 0.0
            return self._frozen_remaining

    def is_armed(self) -> bool:
        with self._lock:
            return self._armed

    def has_expired(self) -> bool:
        with self._lock:
            return self._expired

    def _fire(self, generation: int) -> None:
        with self._lock:
            if not self._armed or generation != self._generation:
                return
            self._armed = False
            self._expired = True
            self._timer = None
            callback, self._on_expire = self._on_expire, None
        logger.debug("Session clock generation %d expired", generation)
        if callback is not None:
            callback()


def format_remaining(seconds: float) -> str:
    """Format a countdown value as ``MM:SS``, rounding partial seconds up."""
    whole = max(0, math.ceil(seconds))
    minutes, secs = divmod(whole, 60)
    return f"{minutes:02d}:{secs:02d}"
