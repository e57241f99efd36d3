"""
Retry Logic — Resilience Against Transient LLM Failures.

API calls fail. Networks drop. Rate limits hit. This module ensures that
transient failures don't end a turn. They're handled with exponential
backoff, jitter, and a narrow definition of what is worth retrying.

- Exponential backoff: wait times double with each retry
- Jitter: random variation prevents thundering herd problems
- Classification: only transient errors (429, 5xx, network) are retried
- Retry-After: the server's own hint wins, in seconds or as an HTTP date
"""

from __future__ import annotations

import asyncio
import inspect
import random
import time
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional, TypeVar

import anthropic
import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        exponential_base: float = 2.0,
        jitter_range: float = 0.25,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter_range = jitter_range

    @classmethod
    def from_claude_config(cls, config: Any) -> "RetryConfig":
        return cls(
            max_retries=config.retry_max_retries,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            exponential_base=config.retry_exponential_base,
            jitter_range=config.retry_jitter_range,
        )


def is_retryable_error(error: Exception) -> bool:
    """
    Determine if an error is transient and worth retrying.

    Retryable:
    - 429 (rate limit)
    - 500, 502, 503, 529 (server errors)
    - Connection and timeout errors

    NOT retryable:
    - 400 (bad request), 401, 403, 404
    - Anything that isn't an API or network error
    """
    if isinstance(error, (anthropic.APIConnectionError, anthropic.APITimeoutError)):
        return True
    if isinstance(error, anthropic.RateLimitError):
        return True
    if isinstance(error, anthropic.InternalServerError):
        return True
    if isinstance(error, anthropic.APIStatusError):
        return error.status_code in (429, 500, 502, 503, 529)
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    return False


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given either as seconds or as an HTTP date."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None
        if when is None:
            return None
        seconds = when.timestamp() - time.time()
    if seconds <= 0:
        return None
    return seconds


def _retry_after_from_error(error: Exception) -> Optional[float]:
    if not isinstance(error, anthropic.APIStatusError):
        return None
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    return parse_retry_after(headers.get("retry-after"))


def compute_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: Optional[float] = None,
) -> float:
    """
    Compute the delay before the next retry attempt.

    Uses exponential backoff with jitter:
        delay = min(max_delay, base_delay * (exponential_base ^ attempt))
        delay += random jitter in [-jitter_range * delay, +jitter_range * delay]

    A server-provided Retry-After replaces the computed delay.
    """
    if retry_after is not None:
        return max(1.0, retry_after)

    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    jitter = delay * config.jitter_range * (2 * random.random() - 1)
    delay = max(0.1, delay + jitter)

    return delay


async def with_retries(
    func: Callable,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable] = None,
) -> Any:
    """
    Execute an async function with retry logic.

    Args:
        func: The async function to execute (no arguments; use a closure)
        config: Retry configuration (uses defaults if not specified)
        on_retry: Optional callback, sync or async, receiving (attempt, error, delay)

    Returns:
        The result of the function call

    Raises:
        The last error if it is not retryable or retries are exhausted
    """
    if config is None:
        config = RetryConfig()

    last_error: Optional[Exception] = None

    for attempt in range(config.max_retries + 1):
        try:
            return await func()
        except Exception as e:
            last_error = e

            if not is_retryable_error(e):
                logger.error(
                    "retry.non_retryable_error",
                    error_type=type(e).__name__,
                    error=str(e)[:200],
                    attempt=attempt,
                )
                raise

            if attempt >= config.max_retries:
                logger.error(
                    "retry.exhausted",
                    error_type=type(e).__name__,
                    error=str(e)[:200],
                    total_attempts=attempt + 1,
                )
                raise

            delay = compute_delay(attempt, config, _retry_after_from_error(e))

            logger.warning(
                "retry.attempt",
                error_type=type(e).__name__,
                error=str(e)[:200],
                attempt=attempt + 1,
                max_retries=config.max_retries,
                delay_seconds=round(delay, 1),
            )

            if on_retry:
                callback_result = on_retry(attempt + 1, e, delay)
                if inspect.isawaitable(callback_result):
                    await callback_result

            await asyncio.sleep(delay)

    raise last_error
