"""
Retry helper with exponential backoff.

The retry ceiling is an explicit loop bound; callers decide which results
are retryable. Waits can be interrupted through a ``threading.Event``.
"""

import time
import threading
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay before retrying after ``attempt`` (1-based): base * 2^(attempt-1)."""
    return base_delay * (2 ** (attempt - 1))


def wait(seconds: float, cancel_event: Optional[threading.Event] = None) -> bool:
    """
    Sleep for ``seconds`` unless cancelled.

    Args:
        seconds: Time to wait
        cancel_event: Optional event; when set the wait ends early

    Returns:
        True if the wait completed, False if it was cancelled
    """
    if cancel_event is None:
        if seconds > 0:
            time.sleep(seconds)
        return True
    if cancel_event.is_set():
        return False
    if seconds > 0:
        return not cancel_event.wait(seconds)
    return True


def run_with_backoff(
    attempt_fn: Callable[[int], T],
    *,
    max_attempts: int,
    base_delay: float,
    should_retry: Callable[[T], bool],
    cancel_event: Optional[threading.Event] = None,
    on_retry: Optional[Callable[[int, float, T], None]] = None,
) -> T:
    """
    Call ``attempt_fn`` until it returns a non-retryable result.

    ``attempt_fn`` receives the 1-based attempt number. At most
    ``max_attempts`` calls are made; the last result is returned whether or
    not it is retryable, so the caller classifies exhausted attempts itself.

    Args:
        attempt_fn: Performs one attempt
        max_attempts: Upper bound on the number of calls
        base_delay: Delay before the first retry, doubled after each attempt
        should_retry: Predicate on an attempt's result
        cancel_event: Stops waiting (and retrying) when set
        on_retry: Called with (attempt, delay, result) before each wait

    Returns:
        Result of the last attempt made
    """
    attempt = 1
    while True:
        result = attempt_fn(attempt)
        if attempt >= max_attempts or not should_retry(result):
            return result

        delay = backoff_delay(base_delay, attempt)
        if on_retry:
            on_retry(attempt, delay, result)
        if not wait(delay, cancel_event):
            return result
        attempt += 1
