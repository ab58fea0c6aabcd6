"""Reusable retry policy for outbound calls.

``retry`` runs a zero-argument callable under a bounded attempt count and an
exponential backoff that only applies between *retryable* failures.  It
returns the callable's result or raises ``RetryExhausted`` carrying the last
error and whether the policy gave up (``exhausted=True``) or stopped on a
fatal error (``exhausted=False``).
"""

from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_before_delay,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Terminal outcome of a retried call that never succeeded."""

    def __init__(
        self,
        last_error: BaseException,
        attempts: int,
        exhausted: bool,
        deadline_exceeded: bool = False,
    ):
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts
        self.exhausted = exhausted
        self.deadline_exceeded = deadline_exceeded


def _log_before_sleep(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "retry.backing_off",
        attempt=retry_state.attempt_number,
        sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=repr(outcome.exception()) if outcome else None,
    )


def retry(
    fn: Callable[[], T],
    *,
    max_attempts: int,
    is_retryable: Callable[[BaseException], bool],
    backoff: float = 1.0,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *fn* up to *max_attempts* times.

    Waits ``backoff * 2 ** (n - 1)`` seconds after the n-th retryable
    failure (1s, 2s, 4s, ... for ``backoff=1``).  Non-retryable errors stop
    immediately.  When *max_delay* is given, the policy gives up instead of
    sleeping whenever the next backoff would end past that many seconds
    after the first attempt.

    Raises:
        RetryExhausted: every attempt failed, or a fatal error occurred.
    """
    attempts = 0

    def _attempt() -> T:
        nonlocal attempts
        attempts += 1
        return fn()

    stop = stop_after_attempt(max_attempts)
    if max_delay is not None:
        stop = stop | stop_before_delay(max_delay)

    retrying = Retrying(
        stop=stop,
        wait=wait_exponential(multiplier=backoff),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_before_sleep,
        sleep=sleep,
        reraise=True,
    )
    try:
        return retrying(_attempt)
    except Exception as exc:
        retryable = is_retryable(exc)
        raise RetryExhausted(
            exc,
            attempts=attempts,
            exhausted=retryable,
            deadline_exceeded=retryable and attempts < max_attempts,
        ) from exc
