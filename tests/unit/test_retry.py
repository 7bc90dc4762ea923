"""
Unit tests for retry logic with exponential backoff

Tests verify:
- Exponential backoff calculation
- Jitter implementation
- Exception filtering
- Retry callbacks
- Transient connection error detection
"""

from unittest.mock import Mock, patch

import pytest
import redis
import requests

from utils.retry import is_transient_error, retry_with_backoff


class TestRetryWithBackoff:
    """Test retry_with_backoff decorator"""

    def test_success_on_first_attempt(self):
        mock_func = Mock(return_value="success")
        decorated = retry_with_backoff(max_retries=3)(mock_func)

        assert decorated() == "success"
        assert mock_func.call_count == 1

    def test_success_after_retries(self):
        mock_func = Mock(side_effect=[
            ConnectionError("Connection failed"),
            ConnectionError("Connection failed"),
            "success",
        ])
        decorated = retry_with_backoff(max_retries=3, sleep=Mock())(mock_func)

        assert decorated() == "success"
        assert mock_func.call_count == 3

    def test_max_retries_exceeded(self):
        mock_func = Mock(side_effect=ConnectionError("Persistent error"))
        decorated = retry_with_backoff(max_retries=2, sleep=Mock())(mock_func)

        with pytest.raises(ConnectionError, match="Persistent error"):
            decorated()

        # Initial attempt + 2 retries
        assert mock_func.call_count == 3

    def test_exponential_backoff_timing(self):
        mock_func = Mock(side_effect=[TimeoutError("Timeout"), TimeoutError("Timeout"), "success"])
        sleep = Mock()
        decorated = retry_with_backoff(
            max_retries=2, base_delay=1.0, exponential_base=2.0, jitter=False, sleep=sleep
        )(mock_func)

        decorated()

        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_max_delay_cap(self):
        mock_func = Mock(side_effect=[TimeoutError(), TimeoutError(), TimeoutError(), "success"])
        sleep = Mock()
        decorated = retry_with_backoff(
            max_retries=5, base_delay=10.0, max_delay=15.0, jitter=False, sleep=sleep
        )(mock_func)

        decorated()

        assert all(c.args[0] <= 15.0 for c in sleep.call_args_list)

    def test_jitter_stays_within_bounds(self):
        mock_func = Mock(side_effect=[TimeoutError()] * 3 + ["success"])
        sleep = Mock()
        decorated = retry_with_backoff(max_retries=3, base_delay=4.0, jitter=True, sleep=sleep)(mock_func)

        decorated()

        for attempt, c in enumerate(sleep.call_args_list):
            expected = 4.0 * (2 ** attempt)
            assert expected * 0.75 <= c.args[0] <= expected * 1.25

    def test_defaults_to_time_sleep(self):
        mock_func = Mock(side_effect=[ConnectionError(), "success"])
        decorated = retry_with_backoff(max_retries=1, jitter=False, base_delay=0.5)(mock_func)

        with patch("time.sleep") as mock_sleep:
            decorated()

        mock_sleep.assert_called_once_with(0.5)

    def test_non_retryable_exception_raised_immediately(self):
        mock_func = Mock(side_effect=ValueError("bad input"))
        decorated = retry_with_backoff(
            max_retries=3, retryable_exceptions=(ConnectionError,), sleep=Mock()
        )(mock_func)

        with pytest.raises(ValueError):
            decorated()

        assert mock_func.call_count == 1

    def test_retry_if_predicate(self):
        mock_func = Mock(side_effect=[redis.ConnectionError("reset"), ValueError("bad"), "x"])
        decorated = retry_with_backoff(max_retries=3, retry_if=is_transient_error, sleep=Mock())(mock_func)

        with pytest.raises(ValueError):
            decorated()

        assert mock_func.call_count == 2

    def test_on_retry_callback(self):
        mock_func = Mock(side_effect=[ConnectionError("first"), "success"])
        callback = Mock()
        decorated = retry_with_backoff(
            max_retries=2, base_delay=1.0, jitter=False, on_retry=callback, sleep=Mock()
        )(mock_func)

        decorated()

        attempt, exc, delay = callback.call_args.args
        assert attempt == 1
        assert str(exc) == "first"
        assert delay == 1.0

    def test_failing_callback_does_not_break_retry(self):
        mock_func = Mock(side_effect=[ConnectionError(), "success"])
        decorated = retry_with_backoff(
            max_retries=1, on_retry=Mock(side_effect=RuntimeError("callback")), sleep=Mock()
        )(mock_func)

        assert decorated() == "success"

    def test_preserves_function_metadata(self):
        @retry_with_backoff()
        def announce_start():
            """Announce."""

        assert announce_start.__name__ == "announce_start"
        assert announce_start.__doc__ == "Announce."


class TestIsTransientError:
    @pytest.mark.parametrize("error", [
        redis.ConnectionError("reset"),
        redis.TimeoutError("slow"),
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
        ConnectionResetError("reset"),
        TimeoutError("slow"),
    ])
    def test_transient(self, error):
        assert is_transient_error(error)

    @pytest.mark.parametrize("error", [
        redis.ResponseError("WRONGTYPE"),
        requests.HTTPError("500"),
        ValueError("bad"),
    ])
    def test_not_transient(self, error):
        assert not is_transient_error(error)
