"""
Run context holding the state shared by one or more checks.

The cache and the network health monitor live here instead of in module
globals. Whoever creates the context owns it: ``reset()`` before a new
domain, ``dispose()`` when done.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .cache import TTLCache
from .config import SystemConfig
from .network_monitor import NetworkHealthMonitor


class CheckContext:
    """Cache plus network monitor with an explicit lifecycle."""

    def __init__(
        self,
        config: Optional[SystemConfig] = None,
        logger: Optional[AuditLogger] = None,
        cache: Optional[TTLCache] = None,
        monitor: Optional[NetworkHealthMonitor] = None,
    ) -> None:
        config = config or SystemConfig()
        self.cache = cache if cache is not None else TTLCache(
            default_ttl_seconds=config.cache.default_ttl_seconds
        )
        self.monitor = monitor or NetworkHealthMonitor(config.health, logger=logger)
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def reset(self) -> None:
        """Prepare for a new domain; cached data is kept."""
        self.monitor.reset()

    def dispose(self) -> int:
        """Drop every cached entry and return how many there were."""
        self._disposed = True
        self.monitor.reset()
        return self.cache.clear()

    def stats(self) -> dict:
        return {
            "cache": self.cache.stats(),
            "network": {
                "healthy": self.monitor.is_healthy(),
                "consecutive_failures": self.monitor.consecutive_failures,
            },
        }
