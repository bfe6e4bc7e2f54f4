"""
Retry Manager for the Wayback redirect checker.

This module provides retry logic with jittered exponential backoff for
transient archive errors. The backoff grows by a fixed multiplier plus a
small random jitter on every failure and is capped at a maximum.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

from .config import RetryConfig
from .exceptions import UpstreamUnavailableError

T = TypeVar("T")


class RetryManager:
    """
    Manages retry logic with jittered exponential backoff.

    backoff(n+1) = min(backoff(n) * multiplier * (1 + jitter), max_backoff),
    seeded at the initial backoff, with jitter drawn uniformly from
    [0, backoff_jitter].
    """

    def __init__(
        self,
        config: RetryConfig,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the retry manager.

        Args:
            config: Retry configuration with attempt count and backoff bounds
            rng: Random source for jitter (injectable for tests)
            sleep: Async sleep function (injectable for tests)
        """
        self._config = config
        self._rng = rng or random.Random()
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def next_backoff(self, current: float) -> float:
        """
        Calculate the next wait time from the current one.

        Args:
            current: The previous backoff in seconds

        Returns:
            The next backoff in seconds, never above the configured maximum
        """
        jitter = self._rng.uniform(0.0, self._config.backoff_jitter)
        grown = current * self._config.backoff_multiplier * (1 + jitter)
        return min(grown, self._config.max_backoff_seconds)

    def backoff_schedule(self, failures: int) -> list[float]:
        """Return the waits that would follow ``failures`` consecutive failures."""
        schedule = []
        backoff = self._config.initial_backoff_seconds
        for _ in range(failures):
            backoff = self.next_backoff(backoff)
            schedule.append(backoff)
        return schedule

    def request_jitter(self) -> float:
        """Random pre-request delay in seconds."""
        return self._rng.uniform(0.0, self._config.request_jitter_seconds)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Optional[Callable[[Exception], bool]] = None,
        on_failure: Optional[Callable[[int, Exception, Optional[float]], None]] = None,
        description: str = "archive request",
    ) -> T:
        """
        Execute an operation, retrying failures with backoff.

        The operation runs at most ``max_retries`` times in total.

        Args:
            operation: The async operation to execute
            is_retryable: Optional predicate deciding whether an exception is
                retried; non-retryable exceptions propagate immediately.
                If not provided, all exceptions are considered retryable.
            on_failure: Optional callback ``(attempt, error, next_backoff)``
                invoked after every failed attempt; ``next_backoff`` is None
                when no retry follows
            description: Used in the terminal error message

        Returns:
            The operation's result

        Raises:
            UpstreamUnavailableError: If every attempt failed
        """
        max_attempts = max(1, self._config.max_retries)
        backoff = self._config.initial_backoff_seconds
        attempts = 0

        while True:
            try:
                return await operation()
            except Exception as e:
                attempts += 1

                if is_retryable is not None and not is_retryable(e):
                    raise

                if attempts >= max_attempts:
                    if on_failure:
                        on_failure(attempts, e, None)
                    raise UpstreamUnavailableError(
                        code="retries_exhausted",
                        message=(
                            f"Failed after {max_attempts} attempts: The Wayback Machine is "
                            "responding very slowly. Please try again later."
                        ),
                        details={
                            "operation": description,
                            "attempts": attempts,
                            "last_error": str(e),
                        },
                    ) from e

                backoff = self.next_backoff(backoff)
                if on_failure:
                    on_failure(attempts, e, backoff)
                await self._sleep(backoff)
