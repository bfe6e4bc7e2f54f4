"""
Property-based tests for the TTL cache.

Covers lazy expiry, never-expiring entries, cached None values, idempotent
reads and pattern invalidation.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from wayback_checker.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


cache_keys = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789:-"),
    min_size=1,
    max_size=30,
)
cache_values = st.one_of(
    st.none(),
    st.integers(),
    st.text(max_size=20),
    st.lists(st.integers(), max_size=5),
)


class TestCacheExpiry:
    """Entries never outlive their TTL and are evicted on read."""

    @given(
        key=cache_keys,
        value=cache_values,
        ttl=st.floats(min_value=1.0, max_value=10_000.0),
        elapsed=st.floats(min_value=0.0, max_value=20_000.0),
    )
    @settings(max_examples=100)
    def test_entry_visible_only_within_ttl(self, key, value, ttl, elapsed) -> None:
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set(key, value, ttl)
        expires_at = clock.now + ttl

        clock.now += elapsed

        if clock.now <= expires_at:
            assert cache.has(key)
            assert cache.get(key, "missing") == value
        else:
            assert not cache.has(key)
            assert cache.stats()["size"] == 0

    @given(key=cache_keys, value=cache_values, ttl=st.sampled_from([None, 0]))
    @settings(max_examples=50)
    def test_falsy_ttl_never_expires(self, key, value, ttl) -> None:
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set(key, value, ttl)

        clock.now += 10 ** 9

        assert cache.has(key)
        assert cache.get(key, "missing") == value

    def test_default_ttl_applies_when_omitted(self) -> None:
        clock = FakeClock()
        cache = TTLCache(default_ttl_seconds=5, clock=clock)
        cache.set("k", "v")

        clock.now += 5
        assert cache.get("k") == "v"
        clock.now += 0.5
        assert cache.get("k") is None

    def test_expired_entry_is_deleted_on_read_only(self) -> None:
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("k", "v", 1)
        clock.now += 2

        assert len(cache) == 1
        assert cache.get("k") is None
        assert len(cache) == 0


class TestCacheReads:
    """``get`` is idempotent and ``has`` agrees with it."""

    @given(key=cache_keys, value=cache_values)
    @settings(max_examples=100)
    def test_get_is_idempotent(self, key, value) -> None:
        cache = TTLCache(clock=FakeClock())
        cache.set(key, value, 60)

        assert cache.get(key) == cache.get(key)
        assert cache.has(key) is True

    def test_cached_none_is_distinguishable_from_missing(self) -> None:
        cache = TTLCache(clock=FakeClock())
        cache.set("negative", None, 60)

        assert cache.has("negative")
        assert cache.get("negative", "missing") is None
        assert not cache.has("absent")
        assert cache.get("absent", "missing") == "missing"


class TestCacheAdministration:
    """invalidate, clear and stats."""

    @given(keys=st.lists(cache_keys, min_size=1, max_size=10, unique=True))
    @settings(max_examples=50)
    def test_stats_lists_every_key(self, keys) -> None:
        cache = TTLCache(clock=FakeClock())
        for key in keys:
            cache.set(key, 1)

        stats = cache.stats()
        assert stats["size"] == len(keys)
        assert sorted(stats["keys"]) == sorted(keys)

    def test_invalidate_by_pattern(self) -> None:
        cache = TTLCache(clock=FakeClock())
        cache.set("page:a", 1)
        cache.set("page:b", 2)
        cache.set("redirect-target:1:x", 3)

        assert cache.invalidate(r"^page:") == 2
        assert cache.stats()["keys"] == ["redirect-target:1:x"]

    def test_clear_returns_removed_count(self) -> None:
        cache = TTLCache(clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.clear() == 2
        assert len(cache) == 0
