#!/usr/bin/env python3
"""
retry.py
--------------------
Retry with exponential backoff for calls to external collaborators.

Used around the speech-to-text and analysis clients; never around
database work, which has its own lock-retry in BaseManager.

Usage:
    from muninn.core.retry import with_retry

    result = with_retry(
        lambda: stt.transcribe(audio, mime_type),
        max_attempts=3,
        on_retry=lambda err, attempt, delay: logger.log_warning(...),
    )
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import random
import time
from typing import Callable, Optional, TypeVar

# --- Third party imports ---
import requests

# --- Local imports ---
from muninn.core.exceptions import ExternalServiceError, ValidationError

T = TypeVar("T")


def _status_code(error: BaseException) -> Optional[int]:
    """Pull an HTTP status out of an exception from requests, anthropic or ours."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status

    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status

    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a failed external call should be attempted again.

    Retries timeouts, connection failures, 5xx and 429. Fails fast on other
    4xx and on validation errors. Anything unrecognized is retried.

    Args:
        error: Exception raised by the call

    Returns:
        True if another attempt may succeed

    Examples:
        >>> is_retryable_error(requests.Timeout())
        True
        >>> is_retryable_error(ExternalServiceError("bad request", status_code=400))
        False
    """
    if isinstance(error, ValidationError):
        return False

    if isinstance(error, (requests.Timeout, requests.ConnectionError)):
        return True
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True

    status = _status_code(error)
    if status is not None:
        return status >= 500 or status == 429

    if isinstance(error, ExternalServiceError):
        return error.retryable

    return True


def with_retry(
    fn: Callable[[], T],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    multiplier: float = 2.0,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `fn` until it succeeds, the error is not retryable, or attempts run out.

    The delay starts at `initial_delay` and grows by `multiplier` plus
    0-20% jitter per retry, capped at `max_delay`. The last error is
    re-raised unchanged.

    Args:
        fn: Zero-argument callable to execute
        max_attempts: Total attempts including the first
        initial_delay: Seconds to wait before the second attempt
        max_delay: Upper bound on any single wait
        multiplier: Growth factor applied after each retry
        is_retryable: Predicate deciding whether to retry an error
        on_retry: Callback receiving (error, attempt, delay) before each wait
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever `fn` returns
    """
    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except Exception as e:
            if attempt >= max_attempts or not is_retryable(e):
                raise

            if on_retry is not None:
                on_retry(e, attempt, delay)

            sleep(delay)

            jitter = random.random() * 0.2 * delay
            delay = min(delay * multiplier + jitter, max_delay)

    raise RuntimeError("with_retry called with max_attempts < 1")
