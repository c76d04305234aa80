"""Tests for jsonstore_core.util.retry."""
import pytest

from jsonstore_core.util.retry import Ready, TimedOut, linear_backoff, poll_until


class _Counter:
    def __init__(self, ready_after: int) -> None:
        self.ready_after = ready_after
        self.refreshes = 0

    def is_ready(self) -> bool:
        return self.refreshes >= self.ready_after

    def refresh(self) -> None:
        self.refreshes += 1


def test_ready_immediately_does_not_sleep() -> None:
    sleeps: list[float] = []
    result = poll_until(
        lambda: True, refresh=lambda: None, max_attempts=3,
        delay=linear_backoff(1.0), sleep=sleeps.append,
    )
    assert result == Ready(attempts=0)
    assert sleeps == []


def test_ready_after_refreshes() -> None:
    c = _Counter(ready_after=3)
    result = poll_until(
        c.is_ready, refresh=c.refresh, max_attempts=10,
        delay=linear_backoff(0.5), sleep=lambda _: None,
    )
    assert result == Ready(attempts=3)


def test_backoff_grows_linearly() -> None:
    c = _Counter(ready_after=4)
    sleeps: list[float] = []
    poll_until(
        c.is_ready, refresh=c.refresh, max_attempts=10,
        delay=linear_backoff(0.25), sleep=sleeps.append,
    )
    assert sleeps == [0.0, 0.25, 0.5, 0.75]


def test_times_out_at_ceiling() -> None:
    c = _Counter(ready_after=100)
    result = poll_until(
        c.is_ready, refresh=c.refresh, max_attempts=5,
        delay=linear_backoff(0.0), sleep=lambda _: None,
    )
    assert isinstance(result, TimedOut)
    assert result.attempts == 5
    assert c.refreshes == 5


def test_negative_base_delay_rejected() -> None:
    with pytest.raises(ValueError):
        linear_backoff(-1.0)


def test_negative_max_attempts_rejected() -> None:
    with pytest.raises(ValueError):
        poll_until(lambda: False, refresh=lambda: None, max_attempts=-1, delay=linear_backoff(0))
