"""
Tests for the resilient archive client.
"""

import asyncio
import random

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from wayback_checker.archive_client import ArchiveClient
from wayback_checker.cache import TTLCache
from wayback_checker.config import ArchiveConfig, HealthConfig, RetryConfig
from wayback_checker.enums import BodyKind
from wayback_checker.exceptions import (
    ProtocolError,
    RequestTimeoutError,
    UpstreamUnavailableError,
)
from wayback_checker.network_monitor import NetworkHealthMonitor


def build_client(handler, retries=3, cache=None, monitor=None, sleeps=None, **archive):
    sleeps = sleeps if sleeps is not None else []

    async def recording_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return ArchiveClient(
        archive_config=ArchiveConfig(**archive),
        retry_config=RetryConfig(max_retries=retries, request_jitter_seconds=0),
        cache=cache,
        monitor=monitor,
        transport=httpx.MockTransport(handler),
        rng=random.Random(0),
        sleep=recording_sleep,
    )


def run(client: ArchiveClient, coro_factory):
    async def go():
        async with client:
            return await coro_factory()

    return asyncio.run(go())


class TestUrls:
    @given(
        timestamp=st.from_regex(r"[0-9]{14}", fullmatch=True),
        base=st.sampled_from(["https://web.archive.org", "https://web.archive.org/"]),
    )
    @settings(max_examples=30)
    def test_snapshot_and_cdx_urls(self, timestamp, base) -> None:
        client = ArchiveClient(archive_config=ArchiveConfig(base_url=base))

        assert client.snapshot_url(timestamp, "http://example.com/") == (
            f"https://web.archive.org/web/{timestamp}/http://example.com/"
        )
        assert client.cdx_endpoint() == "https://web.archive.org/cdx/search/cdx"

    @given(seed=st.integers(min_value=0, max_value=2 ** 32 - 1))
    @settings(max_examples=30)
    def test_headers_use_configured_agents(self, seed) -> None:
        agents = ["agent-a", "agent-b"]
        client = ArchiveClient(
            archive_config=ArchiveConfig(user_agents=agents), rng=random.Random(seed)
        )

        headers = client.build_headers({"X-Extra": "1"})

        assert headers["User-Agent"] in agents
        assert headers["Accept-Language"] == "en-US,en;q=0.9"
        assert headers["X-Extra"] == "1"


class TestFetchWithRetry:
    def test_json_body_is_buffered(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[["timestamp"], ["20200101000000"]])

        client = build_client(handler)

        response = run(client, lambda: client.fetch_with_retry("https://web.archive.org/cdx/search/cdx"))

        assert response.body_kind is BodyKind.JSON
        assert response.json() == [["timestamp"], ["20200101000000"]]
        assert response.json() == response.json()

    def test_text_json_parsed_on_demand(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="[]", headers={"Content-Type": "text/plain"})

        client = build_client(handler)

        response = run(client, lambda: client.fetch_with_retry("https://web.archive.org/x"))

        assert response.body_kind is BodyKind.TEXT
        assert response.json() == []

    def test_invalid_json_is_protocol_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>", headers={"Content-Type": "text/html"})

        client = build_client(handler)
        response = run(client, lambda: client.fetch_with_retry("https://web.archive.org/x"))

        with pytest.raises(ProtocolError):
            response.json()

    @given(failures=st.integers(min_value=0, max_value=3))
    @settings(max_examples=20)
    def test_transient_failures_are_retried(self, failures) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) <= failures:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, text="ok")

        sleeps = []
        monitor = NetworkHealthMonitor(HealthConfig(error_threshold=100))
        client = build_client(handler, retries=5, monitor=monitor, sleeps=sleeps)

        response = run(client, lambda: client.fetch_with_retry("https://web.archive.org/x"))

        assert response.text() == "ok"
        assert len(calls) == failures + 1
        assert len(sleeps) == failures
        assert monitor.consecutive_failures == 0

    def test_exhaustion_raises_and_counts_failures(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="down")

        monitor = NetworkHealthMonitor(HealthConfig(error_threshold=100))
        client = build_client(handler, retries=3, monitor=monitor)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            run(client, lambda: client.fetch_with_retry("https://web.archive.org/x"))

        assert exc_info.value.details["attempts"] == 3
        assert monitor.consecutive_failures == 3

    def test_non_network_error_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            raise RuntimeError("transport bug")

        sleeps = []
        monitor = NetworkHealthMonitor(HealthConfig(error_threshold=100))
        client = build_client(handler, retries=5, monitor=monitor, sleeps=sleeps)

        with pytest.raises(RuntimeError):
            run(client, lambda: client.fetch_with_retry("https://web.archive.org/x"))

        assert calls == [1]
        assert sleeps == []
        assert monitor.consecutive_failures == 0

    def test_connection_errors_are_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, text="ok")

        client = build_client(handler, retries=3)

        response = run(client, lambda: client.fetch_with_retry("https://web.archive.org/x"))

        assert response.text() == "ok"
        assert calls == [1, 1]

    def test_extra_acceptable_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="gone")

        client = build_client(handler)

        response = run(client, lambda: client.fetch_with_retry(
            "https://web.archive.org/x", acceptable_status_codes=(200, 404)
        ))

        assert response.status == 404
        assert not response.ok

    def test_empty_acceptable_status_rejected(self) -> None:
        client = build_client(lambda request: httpx.Response(200))

        with pytest.raises(ValueError):
            run(client, lambda: client.fetch_with_retry("https://web.archive.org/x", acceptable_status_codes=()))

    def test_cached_response_skips_network(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(200, text="body")

        cache = TTLCache()
        client = build_client(handler, cache=cache)

        async def twice():
            first = await client.fetch_with_retry("https://web.archive.org/x", cache_key="k")
            second = await client.fetch_with_retry("https://web.archive.org/x", cache_key="k")
            return first, second

        first, second = run(client, twice)

        assert first == second
        assert calls == [1]


class TestFetchOnce:
    def test_redirect_is_not_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/start":
                return httpx.Response(302, headers={"Location": "https://web.archive.org/end"})
            return httpx.Response(200, text="end")

        client = build_client(handler)

        response = run(client, lambda: client.fetch_once("https://web.archive.org/start", follow_redirects=False))

        assert response.status == 302
        assert response.header("Location") == "https://web.archive.org/end"

    def test_redirect_is_followed_by_default(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/start":
                return httpx.Response(302, headers={"Location": "https://web.archive.org/end"})
            return httpx.Response(200, text="end")

        client = build_client(handler)

        response = run(client, lambda: client.fetch_once("https://web.archive.org/start"))

        assert response.status == 200
        assert response.text() == "end"

    def test_timeout_maps_to_request_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = build_client(handler)

        with pytest.raises(RequestTimeoutError) as exc_info:
            run(client, lambda: client.fetch_once("https://web.archive.org/x", timeout=2.0))

        assert exc_info.value.details["timeout_seconds"] == 2.0
