"""Unit tests for the shared retry policy."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from shared.infrastructure.retry import RetryExhausted, retry

pytestmark = pytest.mark.unit


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, Transient)


class TestRetry:
    def test_returns_first_success(self):
        fn = MagicMock(return_value="ok")
        sleep = MagicMock()

        assert retry(fn, max_attempts=3, is_retryable=_is_transient, sleep=sleep) == "ok"
        assert fn.call_count == 1
        sleep.assert_not_called()

    def test_recovers_after_transient_failures(self):
        fn = MagicMock(side_effect=[Transient(), Transient(), "ok"])
        sleep = MagicMock()

        result = retry(fn, max_attempts=3, is_retryable=_is_transient, sleep=sleep)

        assert result == "ok"
        assert fn.call_count == 3

    def test_backoff_doubles_between_attempts(self):
        fn = MagicMock(side_effect=[Transient(), Transient(), "ok"])
        sleep = MagicMock()

        retry(fn, max_attempts=3, is_retryable=_is_transient, backoff=1.0, sleep=sleep)

        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_exhausted_after_max_attempts(self):
        error = Transient("still down")
        fn = MagicMock(side_effect=error)
        sleep = MagicMock()

        with pytest.raises(RetryExhausted) as exc_info:
            retry(fn, max_attempts=3, is_retryable=_is_transient, sleep=sleep)

        assert fn.call_count == 3
        assert sleep.call_count == 2
        assert exc_info.value.attempts == 3
        assert exc_info.value.exhausted is True
        assert exc_info.value.deadline_exceeded is False
        assert exc_info.value.last_error is error

    def test_fatal_error_stops_immediately(self):
        fn = MagicMock(side_effect=[Fatal("bad request"), "never"])
        sleep = MagicMock()

        with pytest.raises(RetryExhausted) as exc_info:
            retry(fn, max_attempts=3, is_retryable=_is_transient, sleep=sleep)

        assert fn.call_count == 1
        sleep.assert_not_called()
        assert exc_info.value.exhausted is False
        assert isinstance(exc_info.value.last_error, Fatal)

    def test_fatal_after_transient(self):
        fn = MagicMock(side_effect=[Transient(), Fatal()])

        with pytest.raises(RetryExhausted) as exc_info:
            retry(fn, max_attempts=5, is_retryable=_is_transient, sleep=MagicMock())

        assert fn.call_count == 2
        assert exc_info.value.exhausted is False

    def test_zero_deadline_stops_after_first_attempt(self):
        fn = MagicMock(side_effect=Transient())

        with pytest.raises(RetryExhausted) as exc_info:
            retry(
                fn,
                max_attempts=5,
                is_retryable=_is_transient,
                max_delay=0,
                sleep=MagicMock(),
            )

        assert fn.call_count == 1
        assert exc_info.value.deadline_exceeded is True

    def test_gives_up_when_next_backoff_would_overrun_deadline(self):
        fn = MagicMock(side_effect=Transient())
        sleep = MagicMock()

        with pytest.raises(RetryExhausted) as exc_info:
            retry(
                fn,
                max_attempts=5,
                is_retryable=_is_transient,
                backoff=1.0,
                max_delay=1.5,
                sleep=sleep,
            )

        assert fn.call_count == 2
        assert [c.args[0] for c in sleep.call_args_list] == [1.0]
        assert exc_info.value.deadline_exceeded is True
