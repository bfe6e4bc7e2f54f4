"""
Property-based tests for the network health monitor (circuit breaker).
"""

import asyncio
import io

from hypothesis import given, settings
from hypothesis import strategies as st

from wayback_checker.audit_logger import AuditLogger
from wayback_checker.config import HealthConfig
from wayback_checker.enums import LogLevel
from wayback_checker.network_monitor import NetworkHealthMonitor


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_logger() -> AuditLogger:
    return AuditLogger(output_stream=io.StringIO(), level=LogLevel.DEBUG)


class TestCircuitBreaker:
    """Unhealthy at the threshold, healthy again after one success."""

    @given(failures=st.integers(min_value=0, max_value=20))
    @settings(max_examples=50)
    def test_healthy_below_threshold(self, failures: int) -> None:
        monitor = NetworkHealthMonitor(HealthConfig(error_threshold=5), clock=FakeClock())
        for _ in range(failures):
            monitor.record_error()

        assert monitor.consecutive_failures == failures
        assert monitor.is_healthy() is (failures < 5)

    @given(failures=st.integers(min_value=5, max_value=30))
    @settings(max_examples=50)
    def test_single_success_resets(self, failures: int) -> None:
        monitor = NetworkHealthMonitor(clock=FakeClock())
        for _ in range(failures):
            monitor.record_error()
        assert not monitor.is_healthy()

        monitor.record_success()

        assert monitor.consecutive_failures == 0
        assert monitor.is_healthy()

    def test_reset_clears_failures(self) -> None:
        monitor = NetworkHealthMonitor(clock=FakeClock(12.0))
        for _ in range(7):
            monitor.record_error()

        monitor.reset()

        assert monitor.is_healthy()
        assert monitor.state.last_failure_at is None


class TestDegradationWarning:
    """The warning is emitted once per cool-down window."""

    def test_warning_respects_cooldown(self) -> None:
        clock = FakeClock()
        logger = make_logger()
        monitor = NetworkHealthMonitor(
            HealthConfig(error_threshold=5, warning_cooldown_seconds=60), logger=logger, clock=clock
        )

        for _ in range(8):
            monitor.record_error()
        warnings = [e for e in logger.entries if e.level == LogLevel.WARN]
        assert len(warnings) == 1
        assert warnings[0].message.startswith("Network issue detected.")

        clock.now += 30
        monitor.record_error()
        assert len([e for e in logger.entries if e.level == LogLevel.WARN]) == 1

        clock.now += 31
        monitor.record_error()
        assert len([e for e in logger.entries if e.level == LogLevel.WARN]) == 2

    def test_no_warning_below_threshold(self) -> None:
        logger = make_logger()
        monitor = NetworkHealthMonitor(logger=logger, clock=FakeClock())
        for _ in range(4):
            monitor.record_error()
        assert logger.entries == []


class TestPause:
    """pause_if_unhealthy sleeps for the cool-down and resets."""

    def test_pause_when_unhealthy(self) -> None:
        slept = []

        async def fake_sleep(seconds: float) -> None:
            slept.append(seconds)

        monitor = NetworkHealthMonitor(clock=FakeClock())
        for _ in range(5):
            monitor.record_error()

        paused = asyncio.run(monitor.pause_if_unhealthy(30, "Test", sleep=fake_sleep))

        assert paused is True
        assert slept == [30]
        assert monitor.is_healthy()

    def test_no_pause_when_healthy(self) -> None:
        slept = []

        async def fake_sleep(seconds: float) -> None:
            slept.append(seconds)

        monitor = NetworkHealthMonitor(clock=FakeClock())
        paused = asyncio.run(monitor.pause_if_unhealthy(30, "Test", sleep=fake_sleep))

        assert paused is False
        assert slept == []
