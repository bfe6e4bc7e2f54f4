"""
Tests for the header-first redirect resolver.

Archived captures are served by httpx.MockTransport.
"""

import asyncio
import random

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from wayback_checker.archive_client import ArchiveClient
from wayback_checker.cache import TTLCache
from wayback_checker.client_redirects import ClientRedirectDetector
from wayback_checker.config import CacheConfig, HealthConfig, RetryConfig
from wayback_checker.enums import RedirectKind
from wayback_checker.network_monitor import NetworkHealthMonitor
from wayback_checker.redirect_resolver import (
    RedirectResolver,
    normalize_location,
    port_heuristic_target,
    unwrap_archive_url,
)

TIMESTAMP = "20200101000000"

hosts = st.sampled_from(["example.com", "new.example.org", "shop.example.net"])
paths = st.from_regex(r"[a-z0-9]{1,10}(/[a-z0-9]{1,10}){0,2}", fullmatch=True)


def build_resolver(handler, cache=None, monitor=None):
    async def no_sleep(seconds: float) -> None:
        return None

    cache = cache if cache is not None else TTLCache()
    client = ArchiveClient(
        retry_config=RetryConfig(request_jitter_seconds=0),
        cache=cache,
        monitor=monitor,
        transport=httpx.MockTransport(handler),
        rng=random.Random(0),
        sleep=no_sleep,
    )
    resolver = RedirectResolver(
        client,
        ClientRedirectDetector(cache=cache),
        cache=cache,
        monitor=monitor,
        cache_config=CacheConfig(),
    )
    return client, resolver


def resolve(client, resolver, original_url: str):
    async def run():
        async with client:
            return await resolver.resolve(TIMESTAMP, original_url)

    return asyncio.run(run())


class TestLocationNormalization:
    """Archive-rewritten Location headers point at the real target."""

    @given(host=hosts, path=paths, scheme=st.sampled_from(["http", "https"]))
    @settings(max_examples=100)
    def test_archive_prefix_is_unwrapped(self, host, path, scheme) -> None:
        location = f"https://web.archive.org/web/20200101000000/{scheme}://{host}/{path}"
        assert unwrap_archive_url(location) == f"{scheme}://{host}/{path}"

    def test_flagged_and_relative_prefixes(self) -> None:
        assert unwrap_archive_url("/web/20200101000000id_/http://a.com/") == "http://a.com/"
        assert unwrap_archive_url("/web/20200101000000/http:/a.com/x") == "http://a.com/x"

    @given(
        host=hosts,
        path=paths,
        depth=st.integers(min_value=2, max_value=4),
        timestamp=st.from_regex(r"[0-9]{14}", fullmatch=True),
    )
    @settings(max_examples=50)
    def test_nested_prefixes_are_all_unwrapped(self, host, path, depth, timestamp) -> None:
        location = f"https://{host}/{path}"
        for _ in range(depth):
            location = f"https://web.archive.org/web/{timestamp}/{location}"

        assert unwrap_archive_url(location) == f"https://{host}/{path}"
        assert normalize_location(location, "http://example.com/") == f"https://{host}/{path}"

    def test_doubly_wrapped_location_with_collapsed_scheme(self) -> None:
        location = (
            "https://web.archive.org/web/20200101000000/"
            "https://web.archive.org/web/20200101000000id_/http:/new.example.org/landing"
        )
        assert unwrap_archive_url(location) == "http://new.example.org/landing"

    def test_relative_location_uses_original_domain(self) -> None:
        assert normalize_location("/moved", "http://www.example.com/") == "http://example.com/moved"

    def test_plain_location_unchanged(self) -> None:
        assert normalize_location("https://new.example.com/", "http://example.com/") == (
            "https://new.example.com/"
        )


class TestPortHeuristics:
    def test_port_80_toggles_www(self) -> None:
        assert port_heuristic_target("http://example.com:80/") == "http://www.example.com"
        assert port_heuristic_target("http://www.example.com:80/") == "http://example.com"

    def test_port_443_upgrades(self) -> None:
        assert port_heuristic_target("https://www.example.com:443/") == "https://example.com"

    def test_other_port_drops_to_bare_domain(self) -> None:
        assert port_heuristic_target("http://example.com:8080/") == "http://example.com"

    @given(host=hosts, path=paths)
    @settings(max_examples=50)
    def test_no_port_no_guess(self, host, path) -> None:
        assert port_heuristic_target(f"http://{host}/{path}") is None


class TestResolve:
    """Classification order and memoization."""

    def test_location_header(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(301, headers={"Location": "https://new.example.com/"})

        client, resolver = build_resolver(handler)

        info = resolve(client, resolver, "http://example.com/")

        assert info.target_url == "https://new.example.com/"
        assert info.status_code == "301"
        assert info.client_side is False
        assert f"/web/{TIMESTAMP}/" in str(requests[0].url)
        assert "User-Agent" in requests[0].headers

    def test_wrapped_location_header(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                302,
                headers={"Location": "https://web.archive.org/web/20200101000001/https://b.example.org/"},
            )

        client, resolver = build_resolver(handler)

        assert resolve(client, resolver, "http://example.com/").target_url == "https://b.example.org/"

    def test_ok_page_with_meta_refresh(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                text='<meta http-equiv="refresh" content="0;url=https://c.example.org/">',
                headers={"Content-Type": "text/html"},
            )

        client, resolver = build_resolver(handler)

        info = resolve(client, resolver, "http://example.com/")

        assert info.client_side is True
        assert info.status_code == "200"
        assert info.detail.kind is RedirectKind.META_REFRESH
        assert info.target_url == "https://c.example.org/"

    def test_redirect_without_location_falls_back_to_port(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(301, text="")

        client, resolver = build_resolver(handler)

        info = resolve(client, resolver, "http://example.com:80/")

        assert info.target_url == "http://www.example.com"
        assert info.client_side is False

    def test_unknown_target_is_cached_as_none(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(404, text="missing")

        cache = TTLCache()
        client, resolver = build_resolver(handler, cache=cache)

        async def run():
            async with client:
                first = await resolver.resolve(TIMESTAMP, "http://example.com/")
                second = await resolver.resolve(TIMESTAMP, "http://example.com/")
                return first, second

        first, second = asyncio.run(run())

        assert first is None and second is None
        assert calls == [1]
        assert cache.has(RedirectResolver.cache_key(TIMESTAMP, "http://example.com/"))

    def test_transport_error_counts_against_health(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        monitor = NetworkHealthMonitor(HealthConfig())
        client, resolver = build_resolver(handler, monitor=monitor)

        assert resolve(client, resolver, "http://example.com/") is None
        assert monitor.consecutive_failures == 1
