"""Bounded exponential-backoff retry for connector network calls.

Only :class:`~mindweave.utils.errors.TransientFetchError` is retried.  Size
limits, empty extractions and configuration problems will not get better on
a second attempt, so they propagate on the first failure.

Delay schedule for ``max_attempts=3, initial_delay=1.0``::

    attempt 1 fails -> sleep 1.0s
    attempt 2 fails -> sleep 2.0s
    attempt 3 fails -> last error is raised
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from mindweave.utils.errors import TransientFetchError
from mindweave.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[_T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    operation_name: str = "remote_call",
) -> _T:
    """Await ``operation()`` until it succeeds or attempts are exhausted.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable per attempt.
    max_attempts:
        Total number of attempts (not additional retries).
    initial_delay:
        Seconds to wait after the first failure; doubled after each
        subsequent failure.
    operation_name:
        Label included in retry log events.

    Returns
    -------
    The value produced by the first successful attempt.

    Raises
    ------
    TransientFetchError
        The error from the final attempt, once all attempts have failed.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: TransientFetchError | None = None
    for attempt in range(max_attempts):
        try:
            return await operation()
        except TransientFetchError as exc:
            last_error = exc
            if attempt == max_attempts - 1:
                break
            delay = initial_delay * (2 ** attempt)
            _logger.warning(
                "connector_retry",
                operation=operation_name,
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)

    _logger.error(
        "connector_retries_exhausted",
        operation=operation_name,
        attempts=max_attempts,
        error=str(last_error),
    )
    assert last_error is not None
    raise last_error
