from __future__ import annotations
"""Wall-clock and deadline primitives used by polling stages."""

import time
from datetime import datetime, timezone
from typing import Callable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Deadline:
    """Fixed time budget measured on a monotonic clock.

    `sleep()` never waits past the end of the budget, so a polling loop that
    checks `expired()` each iteration cannot overshoot it by more than one
    in-flight request.
    """

    def __init__(
        self,
        timeout_seconds: float,
        *,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._timeout_seconds = max(0.0, timeout_seconds)
        self._monotonic = monotonic
        self._sleep = sleep
        self._started = monotonic()

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def elapsed(self) -> float:
        return self._monotonic() - self._started

    def remaining(self) -> float:
        return max(0.0, self._timeout_seconds - self.elapsed())

    def expired(self) -> bool:
        return self.elapsed() >= self._timeout_seconds

    def sleep(self, seconds: float) -> None:
        wait = min(seconds, self.remaining())
        if wait > 0:
            self._sleep(wait)
