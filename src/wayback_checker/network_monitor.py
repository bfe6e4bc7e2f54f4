"""
Network health monitor for the Wayback redirect checker.

Tracks consecutive request failures against the archive. Once the failure
count reaches the threshold the monitor reports itself unhealthy; consumers
pause for a fixed cool-down and reset it before dispatching more work.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .config import HealthConfig

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class NetworkHealthState:
    """Snapshot of the monitor's counters."""

    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None
    last_warning_at: Optional[float] = None


class NetworkHealthMonitor:
    """
    Circuit breaker with a fixed cool-down.

    - record_error() increments the consecutive failure counter
    - record_success() resets it to zero
    - is_healthy() is False once the counter reaches the threshold
    """

    WARNING_LINES = (
        "Multiple consecutive errors occurred. This might be due to:",
        "1. Wayback Machine rate limiting your current IP address",
        "2. Network connectivity issues",
        "3. VPN-related connection problems",
        "Suggested actions: wait a few minutes, change your VPN connection "
        "or IP address, or reduce the number of concurrent requests",
    )

    def __init__(
        self,
        config: Optional[HealthConfig] = None,
        logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            config: Threshold and warning cool-down settings
            logger: Optional logger for the degradation warning
            clock: Time source in seconds
        """
        self._config = config or HealthConfig()
        self._logger = logger
        self._clock = clock
        self._state = NetworkHealthState()

    @property
    def state(self) -> NetworkHealthState:
        return NetworkHealthState(
            consecutive_failures=self._state.consecutive_failures,
            last_failure_at=self._state.last_failure_at,
            last_warning_at=self._state.last_warning_at,
        )

    @property
    def consecutive_failures(self) -> int:
        return self._state.consecutive_failures

    @property
    def threshold(self) -> int:
        return self._config.error_threshold

    def record_error(self) -> None:
        """
        Record a failed request.

        When the threshold is reached and no warning was emitted within the
        cool-down period, a WARN entry describing likely causes is logged.
        """
        now = self._clock()
        self._state.consecutive_failures += 1
        self._state.last_failure_at = now

        if self._state.consecutive_failures < self._config.error_threshold:
            return

        last_warning = self._state.last_warning_at
        if last_warning is None or (now - last_warning) > self._config.warning_cooldown_seconds:
            if self._logger:
                self._logger.warn(
                    "NetworkHealthMonitor",
                    "Network issue detected. " + " ".join(self.WARNING_LINES),
                    {"consecutive_failures": self._state.consecutive_failures},
                )
            self._state.last_warning_at = now

    def record_success(self) -> None:
        self._state.consecutive_failures = 0

    def is_healthy(self) -> bool:
        return self._state.consecutive_failures < self._config.error_threshold

    def reset(self) -> None:
        """Clear the failure counter; the warning cool-down is kept."""
        self._state.consecutive_failures = 0
        self._state.last_failure_at = None

    async def pause_if_unhealthy(
        self,
        pause_seconds: float,
        component: str,
        sleep: SleepFunc = asyncio.sleep,
    ) -> bool:
        """
        Sleep for the cool-down and reset if the monitor is unhealthy.

        Returns:
            True if a pause happened
        """
        if self.is_healthy():
            return False

        if self._logger:
            self._logger.debug(
                component,
                f"Pausing for {pause_seconds:g} seconds due to network issues",
                {"consecutive_failures": self._state.consecutive_failures},
            )
        await sleep(pause_seconds)
        self.reset()
        return True
