"""
Retry decorator with exponential backoff for transient connection failures

Provides resilient retry logic for the shared signal store and other
network calls that may briefly lose their connection:
- Exponential backoff (base 2.0)
- Jitter to prevent thundering herd
- Configurable max retries
- Transient-error detection for redis and requests
- Callback support for metrics integration

Usage:
    from utils.retry import retry_with_backoff, is_transient_error

    @retry_with_backoff(max_retries=3, base_delay=0.5, retry_if=is_transient_error)
    def announce(client, key, message):
        client.sadd(key, message)
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

import redis
import requests

logger = logging.getLogger(__name__)

TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    redis.ConnectionError,
    redis.TimeoutError,
    requests.ConnectionError,
    requests.Timeout,
    ConnectionError,
    TimeoutError,
)


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if an exception is a transient connection failure

    Args:
        exception: The exception to check

    Returns:
        True if retrying the call may succeed, False otherwise
    """
    return isinstance(exception, TRANSIENT_EXCEPTIONS)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add random jitter to prevent thundering herd (default: True)
        retryable_exceptions: Tuple of exception types to retry (default: all exceptions)
        retry_if: Predicate deciding whether an exception is retryable
        on_retry: Callback function(attempt, exception, delay) called on each retry
        sleep: Sleep function (default: time.sleep)

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(
            max_retries=5,
            retryable_exceptions=(redis.ConnectionError,),
            on_retry=lambda attempt, exc, delay: logger.info(f"Retry {attempt}: {exc}")
        )
        def pop_signal(client, key):
            return client.spop(key)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            func_name = getattr(func, '__name__', 'function')

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except Exception as e:
                    retryable = True
                    if retryable_exceptions and not isinstance(e, retryable_exceptions):
                        retryable = False
                    if retry_if is not None and not retry_if(e):
                        retryable = False

                    if not retryable:
                        logger.error(
                            f"Non-retryable exception in {func_name}: {type(e).__name__}: {e}"
                        )
                        raise

                    if attempt == max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func_name}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)

                    # Jitter of +/-25%
                    if jitter:
                        jitter_amount = delay * 0.25
                        delay = delay + random.uniform(-jitter_amount, jitter_amount)
                        delay = max(0.1, delay)

                    logger.warning(
                        f"Attempt {attempt + 1}/{max_retries} failed for {func_name}: "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )

                    if on_retry:
                        try:
                            on_retry(attempt + 1, e, delay)
                        except Exception as callback_error:
                            logger.error(f"Error in retry callback: {callback_error}")

                    (sleep or time.sleep)(delay)

            raise RuntimeError(f"Unexpected error in retry logic for {func_name}")

        return wrapper
    return decorator
