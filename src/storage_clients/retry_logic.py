"""Retry with exponential backoff for rate-limited HTTP storage services.

Used by the HTTP object store and the GitHub repository client. Only rate
limit (429) failures are retried, with 1s, 2s and 4s waits; every other
error propagates immediately.
"""

import logging
import time
from typing import Callable, TypeVar

from .errors import RateLimitExceededError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3


def retry_on_rate_limit(func: Callable[..., T], *args, service: str = "Remote service", **kwargs) -> T:
    """Call ``func``, retrying on rate limit responses.

    Args:
        func: Callable to execute
        *args: Positional arguments for ``func``
        service: Service name used in log and error messages
        **kwargs: Keyword arguments for ``func``

    Returns:
        The return value of ``func``

    Raises:
        RateLimitExceededError: If the rate limit persists after MAX_RETRIES
        Other exceptions: Propagated without retry

    Example:
        >>> data = retry_on_rate_limit(session.get, url, timeout=30, service="GitHub")
    """
    for retry_num in range(MAX_RETRIES + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not _is_rate_limit_error(e):
                raise

            if retry_num >= MAX_RETRIES:
                logger.error(f"{service} rate limit persisted after {MAX_RETRIES} retries, giving up")
                raise RateLimitExceededError(service, MAX_RETRIES) from e

            wait_time = 2 ** retry_num
            logger.info(
                f"{service} rate limit hit, retrying in {wait_time}s "
                f"(retry {retry_num + 1}/{MAX_RETRIES})"
            )
            time.sleep(wait_time)

    raise RateLimitExceededError(service, MAX_RETRIES)


def _is_rate_limit_error(exception: Exception) -> bool:
    """Check whether an exception represents an HTTP 429 response."""
    if getattr(exception, 'status_code', None) == 429:
        return True

    response = getattr(exception, 'response', None)
    if response is not None and getattr(response, 'status_code', None) == 429:
        return True

    error_msg = str(exception).lower()
    return any(
        pattern in error_msg
        for pattern in ('429', 'too many requests', 'rate limit exceeded')
    )
