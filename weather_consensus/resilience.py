"""
Resilience Infrastructure for Weather Consensus

Retry with exponential backoff for a single provider's HTTP calls. The
aggregator never retries: a provider that wants retries wraps its own
requests with `with_retry` or `retry_async`, and once the attempts run out
the last error propagates so the aggregator sees an ordinary failure.

Only transient problems are retried: timeouts, connection errors, 408,
429 and 5xx responses. Client errors and unparseable payloads come back
the same way every time, so they fail on the first attempt.
"""

import asyncio
import functools
import json
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, FrozenSet, Optional, Tuple, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorType(Enum):
    """Failure categories used in retry log lines."""
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RetryConfig:
    """
    How hard a provider tries before giving up.

    Delays grow as base_delay_seconds * exponential_base ** attempt, capped at
    max_delay_seconds, plus up to 25% random jitter when enabled.
    """
    max_retries: int = 2  # attempts after the first
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True

    # Statuses retried even though they are below 500
    transient_statuses: FrozenSet[int] = frozenset({408, 429})

    def retries_status(self, status: int) -> bool:
        return status >= 500 or status in self.transient_statuses


DEFAULT_RETRY_CONFIG = RetryConfig()

# For tests and for callers that want a provider to fail on the first error
NO_RETRY = RetryConfig(max_retries=0, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter=False)

_PARSE_ERRORS = (json.JSONDecodeError, KeyError, ValueError, TypeError)

_STATUS_TYPES = {
    408: ErrorType.TIMEOUT,
    429: ErrorType.RATE_LIMIT,
}


def categorize_error(exception: BaseException) -> Tuple[ErrorType, str]:
    """Return (category, short description) for a failed attempt."""
    detail = str(exception)[:200]

    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return _STATUS_TYPES.get(status, ErrorType.API_ERROR), f"upstream answered {status}"
    if isinstance(exception, httpx.TimeoutException):
        return ErrorType.TIMEOUT, f"no answer in time ({detail})"
    if isinstance(exception, httpx.RequestError):
        return ErrorType.API_ERROR, f"transport failure ({detail})"
    if isinstance(exception, _PARSE_ERRORS):
        return ErrorType.PARSE_ERROR, f"unusable payload ({detail})"
    return ErrorType.UNKNOWN, detail


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to sleep before retry number `attempt` (0-indexed)."""
    delay = config.base_delay_seconds * config.exponential_base ** attempt
    delay = min(delay, config.max_delay_seconds)
    if config.jitter:
        delay *= 1.0 + random.uniform(0.0, 0.25)
    return delay


def is_retryable_error(exception: BaseException, config: RetryConfig) -> bool:
    if isinstance(exception, httpx.HTTPStatusError):
        return config.retries_status(exception.response.status_code)
    # TimeoutException is a RequestError too
    return isinstance(exception, httpx.RequestError)


def with_retry(
    config: Optional[RetryConfig] = None,
    provider_name: str = "unknown"
) -> Callable:
    """
    Decorator that retries an async function on transient failures.

    Cancellation is never retried. When every attempt fails the last
    exception is re-raised unchanged.

    Usage:
        @with_retry(provider_name="openWeatherMap")
        async def fetch(city: str) -> dict:
            ...
    """
    if config is None:
        config = DEFAULT_RETRY_CONFIG

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            start_time = time.monotonic()
            attempt = 0

            while True:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    error_type, detail = categorize_error(e)
                    logger.warning(f"[{provider_name}] Attempt {attempt + 1} failed: {error_type.value} - {detail}")

                    if not is_retryable_error(e, config):
                        logger.error(f"[{provider_name}] {error_type.value} is permanent, not retrying")
                        raise

                    if attempt >= config.max_retries:
                        elapsed = time.monotonic() - start_time
                        logger.error(
                            f"[{provider_name}] Giving up after {attempt + 1} attempts "
                            f"in {elapsed:.2f}s ({error_type.value})"
                        )
                        raise

                    delay = calculate_backoff_delay(attempt, config)
                    attempt += 1
                    logger.info(f"[{provider_name}] Retry {attempt}/{config.max_retries} in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue

                if attempt > 0:
                    elapsed = time.monotonic() - start_time
                    logger.info(f"[{provider_name}] Recovered on attempt {attempt + 1} after {elapsed:.2f}s")
                return result

        return async_wrapper

    return decorator


async def retry_async(
    func: Callable[..., Awaitable[T]],
    provider_name: str = "unknown",
    config: Optional[RetryConfig] = None,
    *args,
    **kwargs
) -> Any:
    """Call `func(*args, **kwargs)` under `with_retry`."""

    @with_retry(config=config, provider_name=provider_name)
    async def attempt():
        return await func(*args, **kwargs)

    return await attempt()
