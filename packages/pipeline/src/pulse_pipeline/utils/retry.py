"""
utils/retry.py — Exponential-backoff retry decorator for async HTTP calls.

Built on tenacity. Each retry is logged with structlog; once attempts are
exhausted the last exception is re-raised unchanged so callers can decide
whether the failure is fatal for their stage.

Usage:
    from pulse_pipeline.utils.retry import with_retry, TRANSIENT_HTTP_ERRORS

    @with_retry(max_attempts=3, retry_on=TRANSIENT_HTTP_ERRORS)
    async def fetch(client: httpx.AsyncClient, url: str) -> str:
        r = await client.get(url)
        r.raise_for_status()
        return r.text
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])

# Connection resets, DNS failures and timeouts. HTTP status errors are not
# retried: a 404 for a missing vintage will not fix itself.
TRANSIENT_HTTP_ERRORS: tuple[type[Exception], ...] = (httpx.TransportError,)


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Decorator that retries an async function with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay.

    Args:
        max_attempts: Total attempts before raising.
        base_delay:   Initial delay in seconds.
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that trigger a retry.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt_log = log.bind(function=fn.__qualname__)
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(max_attempts),
                    wait=wait_exponential(multiplier=base_delay, max=max_delay),
                    retry=retry_if_exception_type(retry_on),
                    reraise=True,
                ):
                    with attempt:
                        attempt_num = attempt.retry_state.attempt_number
                        if attempt_num > 1:
                            attempt_log.warning(
                                "retry_attempt",
                                attempt=attempt_num,
                                max_attempts=max_attempts,
                            )
                        return await fn(*args, **kwargs)
            except retry_on as exc:
                attempt_log.error(
                    "retry_exhausted",
                    max_attempts=max_attempts,
                    error=str(exc),
                )
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
