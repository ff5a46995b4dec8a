"""
Bounded retry for calls to external lookup sources.

Only transient failures are retried, with a fixed pause between
attempts. Anything else propagates on the first failure.
"""

import logging
import time
from typing import Callable, Optional, Tuple, Type

from .errors import TransientSourceError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {
    408,  # Request Timeout
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


def should_retry_http_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


def call_with_retry(
    func: Callable,
    *args,
    attempts: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[Type[Exception], ...] = (TransientSourceError,),
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable] = None,
    **kwargs,
):
    """
    Call ``func`` up to ``attempts`` times.

    Args:
        attempts: Total number of calls, first one included
        delay: Fixed pause in seconds between two calls
        retry_on: Exceptions that trigger another attempt
        sleep: Sleep function (tests pass a no-op)
        on_retry: Optional callback(attempt, exception, delay)

    Raises:
        The last retryable exception once attempts are exhausted, or any
        other exception immediately.
    """
    attempts = max(1, int(attempts))
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except retry_on as exc:
            if attempt >= attempts:
                logger.warning(f"[retry-exhausted] {getattr(func, '__name__', func)} after {attempts} attempts: {exc}")
                raise
            if on_retry:
                on_retry(attempt, exc, delay)
            logger.info(f"[retry] attempt {attempt}/{attempts} failed ({exc}); retrying in {delay}s")
            sleep(delay)


