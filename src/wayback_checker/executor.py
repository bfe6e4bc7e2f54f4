"""
Bounded parallel executor for archive work.

Runs an async work function over a list of items with a cap on in-flight
operations, a delay between task starts, and adaptive slow-down when items
keep failing. Failures are contained per item: a failed item yields None in
its slot and the batch carries on.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from .audit_logger import AuditLogger
from .config import ConcurrencyConfig
from .network_monitor import NetworkHealthMonitor

T = TypeVar("T")
R = TypeVar("R")

COMPONENT = "BoundedExecutor"


@dataclass
class ExecutorState:
    """Counters owned by a single ``run`` invocation."""

    consecutive_failures: int = 0
    succeeded: int = 0
    failed: int = 0


class BoundedExecutor:
    """
    Adaptive bounded-concurrency runner.

    - Effective concurrency is halved (minimum 1) after
      ``degrade_after_failures`` consecutive item failures and restored on
      the next success.
    - The delay between task starts grows by 50% per consecutive failure.
    - Before each start the shared network monitor is consulted; when it is
      unhealthy the executor pauses and resets it.
    """

    def __init__(
        self,
        config: Optional[ConcurrencyConfig] = None,
        monitor: Optional[NetworkHealthMonitor] = None,
        logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or ConcurrencyConfig()
        self._monitor = monitor
        self._logger = logger
        self._sleep = sleep

    def effective_concurrency(self, max_concurrency: int, state: ExecutorState) -> int:
        """Concurrency cap for the current failure streak."""
        if state.consecutive_failures >= self._config.degrade_after_failures:
            return max(1, max_concurrency // 2)
        return max(1, max_concurrency)

    def start_delay(self, base_delay: float, state: ExecutorState) -> float:
        return base_delay * (1 + state.consecutive_failures * 0.5)

    def error_delay(self, state: ExecutorState) -> float:
        """Extra wait after a failure once the streak reaches the degrade threshold."""
        if state.consecutive_failures < self._config.degrade_after_failures:
            return 0.0
        return min(1.0 * state.consecutive_failures, self._config.max_error_delay_seconds)

    async def run(
        self,
        items: Sequence[T],
        work: Callable[[T], Awaitable[R]],
        max_concurrency: Optional[int] = None,
        inter_task_delay: Optional[float] = None,
    ) -> list[Optional[R]]:
        """
        Run ``work`` over ``items``.

        Args:
            items: Inputs, processed in order of dispatch
            work: Async function applied to each item
            max_concurrency: In-flight cap (defaults to configuration)
            inter_task_delay: Seconds between task starts (defaults to configuration)

        Returns:
            Results in input order; None where the item failed

        Raises:
            ValueError: If ``work`` is missing or not callable
        """
        if work is None or not callable(work):
            raise ValueError("work must be an async callable")

        limit = max_concurrency or self._config.max_concurrent_requests
        base_delay = (
            self._config.request_delay_seconds if inter_task_delay is None else inter_task_delay
        )

        state = ExecutorState()
        results: list[Optional[R]] = [None] * len(items)
        in_flight: set[asyncio.Task] = set()

        async def process(index: int, item: T) -> None:
            try:
                result = await work(item)
            except Exception as e:
                results[index] = None
                state.consecutive_failures += 1
                state.failed += 1
                if self._monitor:
                    self._monitor.record_error()
                self._debug(f"Error processing item {index}: {e}")

                extra_delay = self.error_delay(state)
                if extra_delay > 0:
                    self._debug(
                        f"Adding extra delay of {extra_delay:g}s due to consecutive errors"
                    )
                    await self._sleep(extra_delay)
            else:
                results[index] = result
                state.consecutive_failures = 0
                state.succeeded += 1
                if self._monitor:
                    self._monitor.record_success()

        for index, item in enumerate(items):
            if self._monitor:
                await self._monitor.pause_if_unhealthy(
                    self._config.health_pause_seconds, COMPONENT, sleep=self._sleep
                )

            while len(in_flight) >= self.effective_concurrency(limit, state):
                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                in_flight.difference_update(done)

            task = asyncio.create_task(process(index, item))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)

            if base_delay > 0:
                await self._sleep(self.start_delay(base_delay, state))

        if in_flight:
            await asyncio.gather(*list(in_flight))

        self._debug(
            f"Processed {len(items)} items: {state.succeeded} succeeded, {state.failed} failed",
            {"succeeded": state.succeeded, "failed": state.failed},
        )
        return results

    def _debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)
