"""Bounded polling with backoff.

``poll_until`` checks a completion predicate, and while it is false sleeps
for ``delay(attempt)`` and calls ``refresh``.  It gives up after
*max_attempts* refreshes and returns a tagged result instead of raising, so
each caller decides which error a timeout maps to.
"""
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class Ready:
    """The predicate became true after *attempts* refreshes."""

    attempts: int


@dataclass(frozen=True)
class TimedOut:
    """The predicate was still false after *attempts* refreshes."""

    attempts: int


PollResult = Ready | TimedOut


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    """Return ``delay(attempt) = base_delay * attempt`` (seconds)."""
    if base_delay < 0:
        raise ValueError("base_delay must be >= 0")

    def delay(attempt: int) -> float:
        return base_delay * attempt

    return delay


def poll_until(
    is_ready: Callable[[], bool],
    *,
    refresh: Callable[[], None],
    max_attempts: int,
    delay: Callable[[int], float],
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Poll *is_ready* until it returns True or *max_attempts* is exhausted.

    Parameters
    ----------
    is_ready:
        Completion predicate, checked before every wait.
    refresh:
        Called after each wait to update the state *is_ready* reads.
    max_attempts:
        Retry ceiling (number of refreshes).
    delay:
        Maps the zero-based attempt number to a wait in seconds.
        The first wait uses attempt 0.
    sleep:
        Blocking sleep function (injectable for tests).

    Returns
    -------
    Ready | TimedOut
    """
    if max_attempts < 0:
        raise ValueError("max_attempts must be >= 0")

    attempt = 0
    while not is_ready():
        if attempt >= max_attempts:
            return TimedOut(attempts=attempt)
        sleep(delay(attempt))
        refresh()
        attempt += 1
    return Ready(attempts=attempt)
