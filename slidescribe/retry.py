"""
Retry Helpers
==============
Retry policy for flaky collaborators (yt-dlp metadata lookups and
downloads) built on tenacity, plus guaranteed cleanup of temporary files.

Policy:
    - at most ``max_retries`` attempts (including the first)
    - randomised exponential backoff, ``retry_delay * 2**n`` upper bound,
      capped at ``MAX_RETRY_DELAY`` seconds
    - only errors accepted by ``is_retryable_error`` are retried
    - each retry is logged at WARNING; the last error is re-raised as-is

Usage::

    info = with_retry(lambda: fetch(url), max_retries=3, retry_delay=1.0)

Dependencies:
    pip install tenacity
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from slidescribe.errors import is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound on any single backoff delay (seconds).
MAX_RETRY_DELAY = 30.0


def retrying(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Build the tenacity controller used by every retried call.

    Args:
        max_retries  : Total number of attempts (including the first).
        retry_delay  : Backoff multiplier in seconds.
        should_retry : ``error -> bool``.  Defaults to ``is_retryable_error``.
        sleep        : Sleep function (injectable for tests).
    """
    return Retrying(
        stop=stop_after_attempt(max(1, max_retries)),
        wait=wait_random_exponential(multiplier=retry_delay, max=MAX_RETRY_DELAY),
        retry=retry_if_exception(should_retry or is_retryable_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )


def with_retry(
    fn: Callable[[], T],
    max_retries: int = 3,
    retry_delay: float = 1.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *fn* under the ``retrying`` policy and return its result.

    Raises the last exception raised by *fn* once attempts are exhausted or
    the error is not retryable.
    """
    return retrying(max_retries, retry_delay, should_retry, sleep)(fn)


def with_cleanup(fn: Callable[[], T], cleanup_fn: Callable[[], None]) -> T:
    """Run *fn* and always run *cleanup_fn* afterwards.

    Cleanup failures are logged and never mask the result (or the error)
    of *fn*.
    """
    try:
        return fn()
    finally:
        try:
            cleanup_fn()
        except Exception as exc:
            logger.error("Cleanup failed: %s", exc)
