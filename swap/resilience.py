"""
Retry and connection-health helpers for remote reads.

Everything here is async: the engine runs on one event loop and a retry
delay must yield to the quote and history tasks instead of blocking them.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from core.errors import is_transient_message

log = logging.getLogger(__name__)

T = TypeVar('T')

Sleep = Callable[[float], Awaitable[Any]]


class RetryConfig:
    """Configuration for retry logic.

    `max_retries` counts retries after the first attempt, so a call is
    attempted at most max_retries + 1 times.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt with exponential backoff."""
        delay = min(
            self.initial_delay * (self.exponential_base ** attempt),
            self.max_delay
        )

        if self.jitter:
            delay *= (0.5 + random.random())

        return delay


def is_network_error(error: BaseException) -> bool:
    """Check if error is network-related or a rate limit."""
    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return True
    return is_transient_message(str(error))


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retry_config: Optional[RetryConfig] = None,
    retry_on: Callable[[BaseException], bool] = is_network_error,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Await `func()` and retry it with exponential backoff.

    Errors rejected by `retry_on` propagate at once. After the last retry the
    final error propagates to the caller.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await func()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= config.max_retries or not retry_on(e):
                raise
            delay = config.get_delay(attempt)
            if on_retry:
                on_retry(attempt, e, delay)
            await sleep(delay)
            attempt += 1


class ConnectionMonitor:
    """Monitors connection health and provides statistics."""

    def __init__(self, name: str = "connection"):
        self.name = name
        self.total_attempts = 0
        self.successful_attempts = 0
        self.failed_attempts = 0
        self.consecutive_failures = 0
        self.last_success_time = 0.0
        self.last_failure_time = 0.0
        self.is_connected = True

    def record_success(self):
        """Record successful operation."""
        self.total_attempts += 1
        self.successful_attempts += 1
        self.consecutive_failures = 0
        self.last_success_time = time.time()

        if not self.is_connected:
            log.info("[%s] Connection restored", self.name)
            self.is_connected = True

    def record_failure(self, error: BaseException):
        """Record failed operation."""
        self.total_attempts += 1
        self.failed_attempts += 1
        self.consecutive_failures += 1
        self.last_failure_time = time.time()

        if self.is_connected and self.consecutive_failures >= 3:
            log.warning("[%s] Connection issues detected (%d consecutive failures): %s",
                        self.name, self.consecutive_failures, error)
            self.is_connected = False

    def get_stats(self) -> dict:
        """Get connection statistics."""
        success_rate = 0.0
        if self.total_attempts > 0:
            success_rate = (self.successful_attempts / self.total_attempts) * 100

        return {
            "name": self.name,
            "is_connected": self.is_connected,
            "total_attempts": self.total_attempts,
            "successful": self.successful_attempts,
            "failed": self.failed_attempts,
            "consecutive_failures": self.consecutive_failures,
            "success_rate": success_rate,
            "last_success_time": self.last_success_time,
            "last_failure_time": self.last_failure_time,
        }

    def should_warn(self) -> bool:
        """Check if we should warn about connection issues."""
        return self.consecutive_failures >= 5
