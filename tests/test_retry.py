"""Tests for the single fixed-delay retry."""

from unittest.mock import MagicMock

import pytest

from apptoken.errors import (
    AuthenticationRejected,
    NetworkFailure,
    ScopeRejected,
    TemporarilyUnavailable,
)
from apptoken.retry import RETRY_DELAY_SECONDS, call_with_single_retry


def _transient(status: int = 503) -> TemporarilyUnavailable:
    return TemporarilyUnavailable(f"HTTP {status}", http_status=status)


class TestCallWithSingleRetry:
    def test_success_first_time_does_not_sleep(self):
        sleep = MagicMock()
        attempt = MagicMock(return_value="token")

        assert call_with_single_retry(attempt, sleep=sleep) == "token"
        attempt.assert_called_once_with(1)
        sleep.assert_not_called()

    def test_transient_then_success(self):
        sleep = MagicMock()
        attempt = MagicMock(side_effect=[_transient(), "token"])

        assert call_with_single_retry(attempt, sleep=sleep) == "token"
        assert [c.args for c in attempt.call_args_list] == [(1,), (2,)]
        sleep.assert_called_once_with(5.0)

    def test_transient_twice_gives_up_after_one_wait(self):
        sleep = MagicMock()
        attempt = MagicMock(side_effect=[_transient(429), _transient(429)])

        with pytest.raises(TemporarilyUnavailable) as excinfo:
            call_with_single_retry(attempt, sleep=sleep)

        assert attempt.call_count == 2
        sleep.assert_called_once_with(RETRY_DELAY_SECONDS)
        assert excinfo.value.attempts == 2
        assert excinfo.value.http_status == 429

    @pytest.mark.parametrize(
        "error",
        [
            AuthenticationRejected("HTTP 401"),
            ScopeRejected("HTTP 403"),
            NetworkFailure("unreachable"),
        ],
    )
    def test_terminal_failures_are_not_retried(self, error):
        sleep = MagicMock()
        attempt = MagicMock(side_effect=error)

        with pytest.raises(type(error)) as excinfo:
            call_with_single_retry(attempt, sleep=sleep)

        attempt.assert_called_once_with(1)
        sleep.assert_not_called()
        assert excinfo.value.attempts == 1

    def test_terminal_failure_on_retry_is_reported_as_classified(self):
        attempt = MagicMock(side_effect=[_transient(), AuthenticationRejected("HTTP 401")])

        with pytest.raises(AuthenticationRejected) as excinfo:
            call_with_single_retry(attempt, sleep=MagicMock())
        assert excinfo.value.attempts == 2

    def test_non_exchange_errors_propagate(self):
        attempt = MagicMock(side_effect=RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            call_with_single_retry(attempt, sleep=MagicMock())
