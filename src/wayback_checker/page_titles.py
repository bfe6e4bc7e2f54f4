"""
Page titles section of the report.

Lists the ``<title>`` of every archived capture of the domain's home page,
newest first, so content changes between owners stand out.
"""

import html as html_module
import re
from typing import Optional

from .archive_client import ArchiveClient
from .audit_logger import AuditLogger
from .cache import TTLCache
from .config import CacheConfig
from .exceptions import RequestTimeoutError, WaybackCheckerError
from .executor import BoundedExecutor
from .formatting import format_wayback_timestamp
from .models import Snapshot
from .network_monitor import NetworkHealthMonitor
from .snapshots import sort_newest_first

COMPONENT = "PageTitles"

TITLE_PATTERN = re.compile(r"(?is)<title[^>]*>(.*?)</title>")
WHITESPACE_PATTERN = re.compile(r"\s+")

NOT_ACCESSIBLE = "Not Found (page could not be accessed)"
TIMED_OUT = "Not Found (timeout - page took too long to respond)"
NO_TITLE = "No Title"

SECTION_HEADER = "PAGE TITLES\n=========\n"
EMPTY_SECTION = "No page snapshots found\n"


def extract_title(html: str) -> Optional[str]:
    found = TITLE_PATTERN.search(html or "")
    if not found:
        return None
    title = WHITESPACE_PATTERN.sub(" ", html_module.unescape(found.group(1))).strip()
    return title or None


class PageTitleFetcher:
    """Fetches and caches page titles of archived captures."""

    def __init__(
        self,
        client: ArchiveClient,
        cache: Optional[TTLCache] = None,
        monitor: Optional[NetworkHealthMonitor] = None,
        cache_config: Optional[CacheConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._monitor = monitor
        self._cache_config = cache_config or CacheConfig()
        self._logger = logger

    async def get_title(self, url: str) -> str:
        """
        Title of the page at ``url``, or a ``Not Found``/``No Title`` marker.

        Titles are cached for a day, markers for an hour.
        """
        key = f"page-title:{url}"
        if self._cache is not None and self._cache.has(key):
            return self._cache.get(key)

        negative_ttl = self._cache_config.default_ttl_seconds
        try:
            response = await self._client.fetch_once(url, follow_redirects=True)
        except RequestTimeoutError:
            if self._monitor:
                self._monitor.record_error()
            return self._remember(key, TIMED_OUT, negative_ttl)
        except WaybackCheckerError as e:
            if self._monitor:
                self._monitor.record_error()
            if self._logger:
                self._logger.debug(COMPONENT, f"Error fetching title: {e.message}", {"url": url})
            return self._remember(key, NOT_ACCESSIBLE, negative_ttl)

        if not response.ok:
            return self._remember(key, NOT_ACCESSIBLE, negative_ttl)

        title = extract_title(response.text())
        if title is None:
            return self._remember(key, NO_TITLE, negative_ttl)
        return self._remember(key, title, self._cache_config.title_ttl_seconds)

    def _remember(self, key: str, value: str, ttl: float) -> str:
        if self._cache is not None:
            self._cache.set(key, value, ttl)
        return value


class PageTitleSection:
    """Builds the ``PAGE TITLES`` report section."""

    def __init__(
        self,
        client: ArchiveClient,
        fetcher: PageTitleFetcher,
        executor: BoundedExecutor,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._executor = executor
        self._logger = logger

    async def build(self, snapshots: list[Snapshot]) -> str:
        if not snapshots:
            return SECTION_HEADER + EMPTY_SECTION

        ordered = sort_newest_first(snapshots)

        async def title_line(snapshot: Snapshot) -> str:
            url = self._client.snapshot_url(snapshot.timestamp, snapshot.original_url)
            title = await self._fetcher.get_title(url)
            return f"{format_wayback_timestamp(snapshot.timestamp)}  - {title}"

        lines = await self._executor.run(ordered, title_line)
        entries = [line for line in lines if line]
        if self._logger:
            self._logger.debug(COMPONENT, f"Collected {len(entries)} page titles")
        if not entries:
            return SECTION_HEADER + EMPTY_SECTION
        return SECTION_HEADER + "\n".join(entries) + "\n"
