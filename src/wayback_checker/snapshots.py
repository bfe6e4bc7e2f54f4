"""
Snapshot retrieval from the Wayback Machine CDX index.

A domain is looked up under several URL spellings (scheme, ``www``,
trailing slash, index pages, explicit ports). Each spelling is paged through
with ``limit``/``offset`` and the rows from all spellings are merged and
deduplicated by ``(timestamp, original_url)``.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, Optional

from .archive_client import ArchiveClient
from .audit_logger import AuditLogger
from .cache import TTLCache
from .config import ArchiveConfig, CacheConfig, ConcurrencyConfig
from .exceptions import WaybackCheckerError
from .executor import BoundedExecutor
from .models import Snapshot
from .network_monitor import NetworkHealthMonitor

COMPONENT = "SnapshotRetriever"

REDIRECT_FILTER = "statuscode:3"
OK_FILTER = "statuscode:200"

CDX_FIELDS = "timestamp,original,statuscode,digest"


def redirect_url_variants(domain: str) -> list[str]:
    """URL spellings searched for 3xx captures."""
    return [
        domain,
        f"http://{domain}",
        f"https://{domain}",
        f"http://www.{domain}",
        f"https://www.{domain}",
        f"{domain}/",
        f"http://{domain}/",
        f"https://{domain}/",
        f"http://www.{domain}/",
        f"https://www.{domain}/",
        f"{domain}/index.html",
        f"http://{domain}/index.html",
        f"https://{domain}/index.html",
        f"{domain}/index.php",
        f"http://{domain}/index.php",
        f"https://{domain}/index.php",
        f"http://{domain}:80",
        f"http://{domain}:80/",
        f"http://www.{domain}:80",
        f"http://www.{domain}:80/",
        f"https://{domain}:443",
        f"https://{domain}:443/",
    ]


def ok_url_variants(domain: str) -> list[str]:
    """URL spellings searched for 200 captures."""
    return [
        domain,
        f"http://{domain}",
        f"https://{domain}",
        f"http://www.{domain}",
        f"https://www.{domain}",
        f"{domain}/",
        f"http://{domain}/",
        f"https://{domain}/",
    ]


def page_url_variants(domain: str) -> list[str]:
    """URL spellings searched, unfiltered, for the page titles section."""
    return [
        domain,
        f"http://{domain}",
        f"https://{domain}",
        f"http://www.{domain}",
        f"https://www.{domain}",
        f"{domain}/",
        f"http://{domain}/",
        f"https://www.{domain}/",
        f"{domain}/index.html",
        f"http://{domain}/index.html",
        f"https://{domain}/index.html",
        f"{domain}/index.php",
        f"http://{domain}/index.php",
        f"https://{domain}/index.php",
    ]


def dedupe_snapshots(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Drop repeated ``(timestamp, original_url)`` pairs, keeping the first seen."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for snapshot in snapshots:
        if snapshot.key in seen:
            continue
        seen.add(snapshot.key)
        unique.append(snapshot)
    return unique


def sort_newest_first(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    return sorted(snapshots, key=lambda snapshot: snapshot.timestamp, reverse=True)


def _is_header_row(row: list) -> bool:
    return bool(row) and str(row[0]).lower() == "timestamp"


class SnapshotRetriever:
    """
    Paged CDX retriever with page-level and result-level memoization.

    Errors while paging are soft: the pages collected so far are returned
    and the failure is only logged.
    """

    def __init__(
        self,
        client: ArchiveClient,
        executor: BoundedExecutor,
        cache: Optional[TTLCache] = None,
        monitor: Optional[NetworkHealthMonitor] = None,
        archive_config: Optional[ArchiveConfig] = None,
        concurrency_config: Optional[ConcurrencyConfig] = None,
        cache_config: Optional[CacheConfig] = None,
        logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._executor = executor
        self._cache = cache
        self._monitor = monitor
        self._archive = archive_config or ArchiveConfig()
        self._concurrency = concurrency_config or ConcurrencyConfig()
        self._cache_config = cache_config or CacheConfig()
        self._logger = logger
        self._sleep = sleep

    def query_url(self, url_variant: str) -> str:
        """CDX search URL for one spelling of the domain."""
        return f"{self._client.cdx_endpoint()}?url={url_variant}&output=json&fl={CDX_FIELDS}"

    def page_url(self, base_query_url: str, offset: int, filter_expr: str = "") -> str:
        url = f"{base_query_url}&limit={self._archive.page_size}&offset={offset}"
        if filter_expr:
            url += f"&filter={filter_expr}"
        return url

    async def get_snapshots_paged(
        self,
        base_query_url: str,
        filter_expr: str = "",
        max_snapshots: Optional[int] = None,
    ) -> list[Snapshot]:
        """
        Page through one CDX query.

        Args:
            base_query_url: CDX query without paging parameters
            filter_expr: CDX ``filter`` value, empty for none
            max_snapshots: Stop once this many rows are collected (None = no cap)

        Returns:
            Snapshots in upstream order, possibly partial after an error
        """
        result_key = f"snapshots:{base_query_url}:{filter_expr}:{max_snapshots}"
        if self._cache is not None and self._cache.has(result_key):
            self._debug(f"Cache hit for snapshots: {base_query_url}")
            return self._cache.get(result_key)

        page_size = self._archive.page_size
        collected: list[Snapshot] = []
        offset = 0

        self._debug(f"Getting snapshots with pagination from {base_query_url}")

        while max_snapshots is None or len(collected) < max_snapshots:
            if self._monitor:
                await self._monitor.pause_if_unhealthy(
                    self._concurrency.health_pause_seconds, COMPONENT, sleep=self._sleep
                )

            url = self.page_url(base_query_url, offset, filter_expr)
            try:
                rows = await self._fetch_page(url)
            except WaybackCheckerError as e:
                self._debug(f"Error in pagination: {e.message}", {"url": url})
                if self._monitor and not self._monitor.is_healthy():
                    self._debug("Adding extra delay due to network issues")
                    await self._sleep(self._concurrency.error_pause_seconds)
                break

            if not rows:
                self._debug("No more snapshots found")
                break

            collected.extend(rows)
            if len(rows) < page_size:
                self._debug(f"End of snapshots reached (got {len(rows)} < {page_size})")
                break

            offset += page_size
            await self._sleep(self._archive.page_delay_seconds)

        if max_snapshots is not None and len(collected) > max_snapshots:
            self._debug(f"Reached maximum snapshots limit ({max_snapshots})")
            collected = collected[:max_snapshots]

        self._debug(f"Total snapshots collected with pagination: {len(collected)}")
        if self._cache is not None:
            self._cache.set(result_key, collected, self._cache_config.default_ttl_seconds)
        return collected

    async def _fetch_page(self, url: str) -> list[Snapshot]:
        page_key = f"page:{url}"
        if self._cache is not None and self._cache.has(page_key):
            return self._cache.get(page_key)

        response = await self._client.fetch_with_retry(url)
        data = response.json()
        if not isinstance(data, list):
            data = []

        rows = [row for row in data if isinstance(row, list) and not _is_header_row(row)]
        snapshots = [Snapshot.from_row(row) for row in rows]
        if snapshots and self._cache is not None:
            self._cache.set(page_key, snapshots, self._cache_config.default_ttl_seconds)
        return snapshots

    async def collect(
        self,
        variants: list[str],
        filter_expr: str,
        cache_key: str,
        max_snapshots: Optional[int] = None,
    ) -> list[Snapshot]:
        """Query every variant with bounded concurrency and merge the results."""
        if self._cache is not None and self._cache.has(cache_key):
            self._debug(f"Cache hit for {cache_key}")
            return self._cache.get(cache_key)

        async def fetch_variant(variant: str) -> list[Snapshot]:
            return await self.get_snapshots_paged(
                self.query_url(variant), filter_expr, max_snapshots
            )

        per_variant = await self._executor.run(
            variants,
            fetch_variant,
            max_concurrency=self._concurrency.max_concurrent_requests,
        )

        merged: list[Snapshot] = []
        for snapshots in per_variant:
            if snapshots:
                merged.extend(snapshots)
        unique = dedupe_snapshots(merged)

        self._debug(f"Total {len(unique)} unique snapshots for {cache_key}")
        if self._cache is not None:
            self._cache.set(cache_key, unique, self._cache_config.default_ttl_seconds)
        return unique

    async def get_redirect_snapshots(
        self, domain: str, max_snapshots: Optional[int] = None
    ) -> list[Snapshot]:
        return await self.collect(
            redirect_url_variants(domain), REDIRECT_FILTER, f"3xx-snapshots:{domain}", max_snapshots
        )

    async def get_ok_snapshots(
        self, domain: str, max_snapshots: Optional[int] = None
    ) -> list[Snapshot]:
        return await self.collect(
            ok_url_variants(domain), OK_FILTER, f"200-snapshots:{domain}", max_snapshots
        )

    async def get_page_snapshots(
        self, domain: str, max_snapshots: Optional[int] = None
    ) -> list[Snapshot]:
        return await self.collect(
            page_url_variants(domain), "", f"page-snapshots:{domain}", max_snapshots
        )

    def _debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)
