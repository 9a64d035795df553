"""
utils/retry.py — Backoff retries for provider transport failures.

Source clients wrap their raw send in with_retry(retry_on=httpx.TransportError):
connection resets and timeouts are retried, while HTTP status errors are
turned into SourceError by the caller and never retried. When attempts run
out the last exception is re-raised as is, so callers see the httpx error
rather than a tenacity RetryError.

Usage:
    from econcal_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _send(self, method: str, url: str) -> httpx.Response:
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _log_before_sleep(max_attempts: int) -> Callable[[RetryCallState], None]:
    def hook(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.warning(
            "retry_attempt",
            function=getattr(state.fn, "__qualname__", "?"),
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            sleep_s=round(state.next_action.sleep, 2) if state.next_action else None,
            error=str(exc) if exc else None,
        )

    return hook


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Retry an async callable with exponential backoff (base_delay, 2x, 4x, …
    capped at max_delay) while it raises one of `retry_on`.
    """
    return retry(  # type: ignore[return-value]
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_before_sleep(max_attempts),
        reraise=True,
    )
