"""Retry timing policy, kept apart from the calls it wraps."""

from typing import Callable

from tenacity import RetryCallState


def linear_backoff(attempt: int, base_delay: float) -> float:
    """
    Delay to wait after failed attempt number ``attempt`` (1-based).

    Attempt ``n`` waits ``n * base_delay``.
    """
    if attempt < 1:
        return 0.0
    return attempt * base_delay


def wait_linear(base_delay: float) -> Callable[[RetryCallState], float]:
    """Adapt ``linear_backoff`` to a tenacity ``wait`` strategy."""

    def _wait(retry_state: RetryCallState) -> float:
        return linear_backoff(retry_state.attempt_number, base_delay)

    return _wait
