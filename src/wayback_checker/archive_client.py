"""
Resilient HTTP client for the Wayback Machine.

This module provides an async client that issues archive requests with
randomized browser-like headers, a per-request deadline, a small random
pre-request delay, and bounded retries with jittered exponential backoff.
Response bodies are buffered and decoded once so they can be cached and
re-read freely.
"""

import asyncio
import random
from typing import Awaitable, Callable, Iterable, Optional

import httpx

from .audit_logger import AuditLogger
from .cache import TTLCache
from .config import ArchiveConfig, RetryConfig
from .enums import BodyKind
from .exceptions import NetworkError, RequestTimeoutError
from .models import ArchiveResponse
from .network_monitor import NetworkHealthMonitor
from .retry_manager import RetryManager

SleepFunc = Callable[[float], Awaitable[None]]

COMPONENT = "ArchiveClient"


class ArchiveClient:
    """
    Async Wayback Machine client.

    Every request picks a random User-Agent from the configured pool and
    attaches a standard browser header set. ``fetch_with_retry`` follows
    redirects and retries; ``fetch_once`` issues a single attempt and is used
    where the caller wants to see the raw 3xx response.
    """

    BASE_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "DNT": "1",
    }

    def __init__(
        self,
        archive_config: Optional[ArchiveConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        cache: Optional[TTLCache] = None,
        monitor: Optional[NetworkHealthMonitor] = None,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the archive client.

        Args:
            archive_config: Endpoint, timeout and User-Agent settings
            retry_config: Retry and backoff settings
            cache: Optional cache for buffered responses
            monitor: Optional network health monitor to feed
            logger: Optional audit logger
            transport: Optional httpx transport (tests use httpx.MockTransport)
            rng: Random source for User-Agent choice and jitter
            sleep: Async sleep function
        """
        self._config = archive_config or ArchiveConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._retry = RetryManager(retry_config or RetryConfig(), rng=self._rng, sleep=sleep)
        self._cache = cache
        self._monitor = monitor
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ArchiveClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def config(self) -> ArchiveConfig:
        return self._config

    @property
    def retry_manager(self) -> RetryManager:
        return self._retry

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout_seconds),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def snapshot_url(self, timestamp: str, original_url: str) -> str:
        """Archived copy of ``original_url`` captured at ``timestamp``."""
        return f"{self._config.base_url.rstrip('/')}/web/{timestamp}/{original_url}"

    def cdx_endpoint(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/cdx/search/cdx"

    def build_headers(self, extra: Optional[dict] = None) -> dict[str, str]:
        """Browser-like header set with a randomly chosen User-Agent."""
        headers = {"User-Agent": self._rng.choice(self._config.user_agents)}
        headers.update(self.BASE_HEADERS)
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        url: str,
        follow_redirects: bool,
        timeout: Optional[float],
        headers: Optional[dict] = None,
    ) -> ArchiveResponse:
        """Issue one GET and buffer the response."""
        client = self._ensure_client()
        effective_timeout = timeout or self._config.request_timeout_seconds

        try:
            response = await client.get(
                url,
                headers=self.build_headers(headers),
                follow_redirects=follow_redirects,
                timeout=httpx.Timeout(effective_timeout),
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                code="timeout",
                message="Request timeout - Wayback Machine is responding slowly",
                details={"url": url, "timeout_seconds": effective_timeout},
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                code="network_error",
                message=f"Connection error: {e}",
                details={"url": url},
            ) from e

        return self._buffer(url, response)

    def _buffer(self, url: str, response: httpx.Response) -> ArchiveResponse:
        headers = {key.lower(): value for key, value in response.headers.items()}
        content_type = headers.get("content-type", "")

        if "application/json" in content_type:
            try:
                return ArchiveResponse(
                    status=response.status_code,
                    headers=headers,
                    body_kind=BodyKind.JSON,
                    body=response.json(),
                    url=url,
                )
            except ValueError:
                # Mislabelled body; keep it as text
                pass

        return ArchiveResponse(
            status=response.status_code,
            headers=headers,
            body_kind=BodyKind.TEXT,
            body=response.text,
            url=url,
        )

    async def fetch_with_retry(
        self,
        url: str,
        acceptable_status_codes: Iterable[int] = (200,),
        cache_key: Optional[str] = None,
        cache_ttl: Optional[float] = 3600.0,
        headers: Optional[dict] = None,
    ) -> ArchiveResponse:
        """
        Fetch ``url`` following redirects, retrying failures with backoff.

        Args:
            url: Absolute URL to fetch
            acceptable_status_codes: Status codes treated as success
            cache_key: Optional cache key for the buffered response
            cache_ttl: Lifetime of the cached response in seconds
            headers: Extra headers merged over the browser header set

        Returns:
            The buffered response

        Raises:
            UpstreamUnavailableError: If every attempt failed
            ValueError: If ``acceptable_status_codes`` is empty
        """
        acceptable = frozenset(acceptable_status_codes)
        if not acceptable:
            raise ValueError("acceptable_status_codes must not be empty")

        if cache_key and self._cache is not None and self._cache.has(cache_key):
            self._debug(f"Cache hit for {cache_key}")
            return self._cache.get(cache_key)

        max_retries = self._retry.config.max_retries

        async def attempt() -> ArchiveResponse:
            jitter = self._retry.request_jitter()
            if jitter > 0:
                await self._sleep(jitter)

            response = await self._send(url, follow_redirects=True, timeout=None, headers=headers)
            if response.status not in acceptable:
                raise NetworkError(
                    code="unacceptable_status",
                    message=f"HTTP error {response.status}",
                    details={"url": url, "status": response.status},
                )
            return response

        def on_failure(attempts: int, error: Exception, next_backoff: Optional[float]) -> None:
            if self._monitor:
                self._monitor.record_error()
            self._debug(f"Attempt {attempts}/{max_retries} failed: {error}", {"url": url})
            if next_backoff is not None:
                self._debug(f"Waiting {round(next_backoff)} seconds before retrying...")

        response = await self._retry.execute_with_retry(
            attempt,
            is_retryable=lambda error: isinstance(error, NetworkError),
            on_failure=on_failure,
            description=url,
        )

        if self._monitor:
            self._monitor.record_success()

        if cache_key and self._cache is not None:
            self._cache.set(cache_key, response, cache_ttl)

        return response

    async def fetch_once(
        self,
        url: str,
        follow_redirects: bool = True,
        timeout: Optional[float] = None,
    ) -> ArchiveResponse:
        """
        Issue a single request without retries.

        Any status code is returned to the caller; transport failures raise
        NetworkError (or RequestTimeoutError on deadline).
        """
        return await self._send(url, follow_redirects=follow_redirects, timeout=timeout)

    def _debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
