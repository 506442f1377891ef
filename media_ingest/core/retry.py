"""Caller-side retry policy with exponential backoff.

Executors never retry on their own; callers pass a ``RetryConfig`` to
``retry_async`` when they want transient upload failures re-attempted.
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional, TypeVar

from media_ingest.core.config import settings
from media_ingest.core.errors import UploadError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        backoff_multiplier: float = 2.0,
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt using exponential backoff.

        Args:
            attempt: The attempt that just failed (1-indexed).

        Returns:
            The delay in seconds, capped at max_delay.
        """
        if attempt < 1:
            return self.initial_delay

        delay = self.initial_delay * math.pow(self.backoff_multiplier, attempt - 1)
        return min(delay, self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        """Check whether another attempt is allowed after ``attempt``."""
        return attempt < self.max_attempts


RETRY_CONFIGS = {
    "upload": RetryConfig(
        max_attempts=settings.UPLOAD_RETRY_MAX_ATTEMPTS,
        initial_delay=settings.UPLOAD_RETRY_INITIAL_DELAY,
        max_delay=settings.UPLOAD_RETRY_MAX_DELAY,
        backoff_multiplier=2.0,
    ),
    "multipart_part": RetryConfig(max_attempts=3, initial_delay=2.0, max_delay=30.0, backoff_multiplier=2.0),
    "none": RetryConfig(max_attempts=1),
    "default": RetryConfig(max_attempts=3, initial_delay=1.0, max_delay=60.0, backoff_multiplier=2.0),
}


def get_retry_config(name: str) -> RetryConfig:
    """Look up a named retry preset, falling back to ``default``."""
    return RETRY_CONFIGS.get(name, RETRY_CONFIGS["default"])


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    on_retry: Optional[Callable[[int, UploadError], None]] = None,
) -> T:
    """Run ``operation`` until it succeeds or a non-retryable error occurs.

    Only ``UploadError`` with ``retryable=True`` is re-attempted; anything
    else propagates on the first occurrence.

    Args:
        operation: Zero-argument coroutine factory
        config: Attempt budget and backoff
        sleep: Awaitable sleep, injectable for tests
        on_retry: Called with (failed attempt, error) before each backoff

    Returns:
        The operation's result

    Raises:
        UploadError: The last error once attempts are exhausted
    """
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except UploadError as e:
            if not e.retryable or not config.should_retry(attempt):
                raise
            delay = config.calculate_delay(attempt)
            logger.warning(
                f"Attempt {attempt}/{config.max_attempts} failed, retrying in {delay:.1f}s: {e.message}"
            )
            if on_retry:
                on_retry(attempt, e)
            await sleep(delay)
