"""Tests for the bounded backoff loop."""

import threading

from ghostcomment.utils.retry import backoff_delay, run_with_backoff, wait


def test_backoff_delay_doubles():
    assert [backoff_delay(1.0, attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 4.0]
    assert backoff_delay(0.5, 2) == 1.0


def test_returns_first_non_retryable_result(sleeps):
    attempts = []

    result = run_with_backoff(
        lambda attempt: attempts.append(attempt) or ("ok" if attempt == 2 else "retry"),
        max_attempts=5,
        base_delay=1.0,
        should_retry=lambda r: r == "retry",
    )

    assert result == "ok"
    assert attempts == [1, 2]
    assert sleeps == [1.0]


def test_attempts_are_bounded(sleeps):
    attempts = []
    retries = []

    result = run_with_backoff(
        lambda attempt: attempts.append(attempt) or "retry",
        max_attempts=3,
        base_delay=1.0,
        should_retry=lambda r: True,
        on_retry=lambda attempt, delay, r: retries.append((attempt, delay)),
    )

    assert result == "retry"
    assert attempts == [1, 2, 3]
    assert sleeps == [1.0, 2.0]
    assert retries == [(1, 1.0), (2, 2.0)]


def test_cancel_stops_retrying():
    cancel = threading.Event()
    cancel.set()
    attempts = []

    run_with_backoff(
        lambda attempt: attempts.append(attempt) or "retry",
        max_attempts=3,
        base_delay=10.0,
        should_retry=lambda r: True,
        cancel_event=cancel,
    )

    assert attempts == [1]


def test_wait():
    cancel = threading.Event()
    assert wait(0, cancel)
    cancel.set()
    assert not wait(5, cancel)


def test_wait_without_event_sleeps(sleeps):
    assert wait(0.25)
    assert wait(0)
    assert sleeps == [0.25]
