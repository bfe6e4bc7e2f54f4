"""
In-memory TTL cache for archive pages and computed results.

Entries expire lazily: an expired entry is deleted the next time it is read,
never proactively. There is no size bound; the cache lives for one process
run or one run context.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

_MISSING = object()


@dataclass
class CacheEntry:
    """A cached value with an optional absolute expiry time."""

    value: Any
    expires_at: Optional[float]


class TTLCache:
    """
    Key/value store with per-entry expiry.

    ``None`` is a legitimate cached value (a remembered negative result), so
    presence is tested with ``has`` or a sentinel default rather than by
    comparing ``get`` against ``None``.
    """

    def __init__(
        self,
        default_ttl_seconds: Optional[float] = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the cache.

        Args:
            default_ttl_seconds: TTL used when ``set`` is called without one;
                ``None`` or ``0`` means entries never expire
            clock: Time source in seconds
        """
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._data: dict[str, CacheEntry] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value for ``key``.

        An entry whose expiry has passed is deleted and treated as missing.
        """
        entry = self._data.get(key)
        if entry is None:
            return default

        if entry.expires_at is not None and entry.expires_at < self._clock():
            del self._data[key]
            return default

        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Any = _MISSING) -> None:
        """
        Store ``value`` under ``key``.

        Args:
            key: Cache key
            value: Value to store (may be None)
            ttl_seconds: Lifetime in seconds; ``None``/``0`` never expires,
                omitted uses the default TTL
        """
        if ttl_seconds is _MISSING:
            ttl_seconds = self._default_ttl

        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = CacheEntry(value=value, expires_at=expires_at)

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def invalidate(self, pattern: str) -> int:
        """
        Delete every entry whose key matches the regular expression ``pattern``.

        Returns:
            Number of entries removed
        """
        regex = re.compile(pattern)
        doomed = [key for key in self._data if regex.search(key)]
        for key in doomed:
            del self._data[key]
        return len(doomed)

    def clear(self) -> int:
        """Remove every entry and return how many there were."""
        size = len(self._data)
        self._data.clear()
        return size

    def stats(self) -> dict:
        return {"size": len(self._data), "keys": list(self._data.keys())}

    def __len__(self) -> int:
        return len(self._data)
