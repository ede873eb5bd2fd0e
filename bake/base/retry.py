"""
Retry utilities for flaky cloud queries.

The state-convergence engine never retries a failed refresh on its own;
refresh functions that want to ride out throttling or a dropped
connection wrap their query with :func:`retry`.

Provider services re-raise SDK errors as
:class:`~bake.base.exceptions.CloudbakeError` subclasses, so
:func:`is_transient` looks through ``__cause__`` for the original
botocore or google-api-core error before deciding.
"""

from __future__ import annotations

import time
import logging
from functools import wraps
from typing import Callable, Any

from botocore.exceptions import ClientError, ConnectionError as BotoConnectionError
from google.api_core import exceptions as gcp_exceptions

logger = logging.getLogger("cloudbake")

# EC2 error codes that go away on their own.
_AWS_TRANSIENT_CODES = frozenset({
    "RequestLimitExceeded",
    "Throttling",
    "ThrottlingException",
    "InternalError",
    "ServiceUnavailable",
    "Unavailable",
})

_GCP_TRANSIENT = (
    gcp_exceptions.TooManyRequests,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.GatewayTimeout,
    gcp_exceptions.DeadlineExceeded,
)


def _transient_cause(exc: BaseException) -> bool:
    if isinstance(exc, (ConnectionError, TimeoutError, BotoConnectionError)):
        return True
    if isinstance(exc, _GCP_TRANSIENT):
        return True
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "") in _AWS_TRANSIENT_CODES
    return False


def is_transient(exc: BaseException) -> bool:
    """True when *exc*, or the SDK error it wraps, is worth retrying."""
    seen: BaseException | None = exc
    while seen is not None:
        if _transient_cause(seen):
            return True
        seen = seen.__cause__
    return False


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retryable_exceptions: tuple[type[BaseException], ...] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator: retry a cloud query with capped exponential backoff.

    Args:
        max_attempts: Maximum number of total attempts (including the first).
        base_delay: Initial delay in seconds before the first retry.
        max_delay: Cap on the delay between retries.
        backoff_factor: Multiplier applied to the delay after each retry.
        retryable_exceptions: Exception types that trigger a retry.  When
            omitted, :func:`is_transient` decides.
        sleep: Function used to pause between attempts.

    Returns:
        Decorated function that retries on transient failures.
    """
    if retryable_exceptions is None:
        should_retry = is_transient
    else:
        types = retryable_exceptions

        def should_retry(exc: BaseException) -> bool:
            return isinstance(exc, types)

    def decorator(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = base_delay
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except Exception as exc:
                    if not should_retry(exc):
                        raise
                    if attempt == max_attempts:
                        logger.error(
                            "[ERROR] All %d attempts failed for %s: %s",
                            max_attempts,
                            fn.__qualname__,
                            exc,
                        )
                        raise
                    logger.warning(
                        "[WARN] Attempt %d/%d for %s failed (%s), retrying in %.1fs",
                        attempt,
                        max_attempts,
                        fn.__qualname__,
                        exc,
                        delay,
                    )
                    sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)
                    attempt += 1

        return wrapper

    return decorator
