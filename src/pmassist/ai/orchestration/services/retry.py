"""Bounded retry with exponential backoff for data-store operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...tools.errors import TransientDataError
from ....data.store import TransientStoreError

__all__ = [
    "RetryPolicy",
    "SleepFn",
    "TRANSIENT_STATUS_CODES",
    "is_transient",
]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})

SleepFn = Callable[[float], Awaitable[None]]


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying: timeouts, resets and gateway errors."""
    if isinstance(exc, TransientStoreError):
        return True
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    status_code = getattr(exc, "status_code", None)
    return isinstance(status_code, int) and status_code in TRANSIENT_STATUS_CODES


@dataclass(slots=True)
class RetryPolicy:
    """Retry transient failures up to ``max_attempts`` total attempts.

    Non-transient errors (validation, permission, not found) propagate on the
    first failure. When every attempt fails transiently a
    :class:`TransientDataError` is raised carrying the attempt count.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Initial backoff delay in seconds.
        max_delay: Upper bound for a single backoff delay.
        jitter: Maximum random jitter added to each delay.
        sleep: Awaitable sleep used between attempts (injectable for tests).
    """

    max_attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0
    jitter: float = 0.2
    sleep: SleepFn = asyncio.sleep

    async def run(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``operation(*args, **kwargs)`` under this policy."""
        attempts = max(1, int(self.max_attempts))
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(
                initial=self.base_delay,
                max=self.max_delay,
                jitter=self.jitter,
            ),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            sleep=self.sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await operation(*args, **kwargs)
        except RetryError as exc:
            last = exc.last_attempt
            cause = last.exception()
            LOGGER.warning("Giving up after %d transient failure(s): %r", last.attempt_number, cause)
            raise TransientDataError(attempts=last.attempt_number) from cause
        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _log_retry(state: RetryCallState) -> None:
        outcome = state.outcome
        error = outcome.exception() if outcome is not None else None
        LOGGER.debug("Transient failure on attempt %d: %r", state.attempt_number, error)
