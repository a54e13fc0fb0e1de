"""
Retry utilities with tenacity.

Provides the retry-then-fail policy shared by repositories and export
status polling.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_none,
    wait_random_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_RETRIES = 3
DEFAULT_MULTIPLIER = 2


class RetryConfig:
    """Configuration for retry behavior.

    `retries` counts the attempts made after the first one, so a call is
    tried at most `retries + 1` times. Without wait bounds, retries happen
    immediately.
    """

    def __init__(
        self,
        retries: int = DEFAULT_RETRIES,
        min_wait: float = 0.0,
        max_wait: float = 0.0,
        multiplier: float = DEFAULT_MULTIPLIER,
        jitter: bool = False,
        retry_exceptions: tuple[type[BaseException], ...] | None = None,
    ):
        """Initialize retry configuration.

        Args:
            retries: Additional attempts after the first failure
            min_wait: Minimum wait time in seconds
            max_wait: Maximum wait time in seconds (0 disables waiting)
            multiplier: Exponential backoff multiplier
            jitter: Add random jitter to wait times
            retry_exceptions: Exception types to retry on
        """
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.retries = retries
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions or (Exception,)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def wait_strategy(self):
        if self.max_wait <= 0:
            return wait_none()
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        return wait_exponential(
            multiplier=self.multiplier,
            min=self.min_wait,
            max=self.max_wait,
        )


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic.

    Args:
        coro_func: Async function to call
        *args: Positional arguments
        config: Retry configuration
        **kwargs: Keyword arguments

    Returns:
        Function result

    Raises:
        The last exception raised by `coro_func` once attempts are exhausted
    """
    if config is None:
        config = RetryConfig()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=retry_if_exception_type(config.retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await coro_func(*args, **kwargs)

    raise AssertionError("unreachable")  # pragma: no cover
