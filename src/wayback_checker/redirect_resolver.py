"""
Header-first redirect classifier for archived 3xx snapshots.

For one ``(timestamp, original_url)`` capture the archived copy is fetched
without following redirects and the target is worked out in priority order:

1. a 2xx body is scanned for client-side redirects
2. a 3xx ``Location`` header is unwrapped and normalized
3. a 3xx body without ``Location`` is scanned for client-side redirects
4. an explicit port on the original URL implies a standard redirect
5. otherwise the target is unknown (None)

Every outcome, None included, is cached; failures are logged, counted against
network health and reported as None.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from .archive_client import ArchiveClient
from .audit_logger import AuditLogger
from .cache import TTLCache
from .client_redirects import ClientRedirectDetector, normalize_url
from .config import CacheConfig
from .exceptions import WaybackCheckerError
from .models import ArchiveResponse, RedirectInfo
from .network_monitor import NetworkHealthMonitor

COMPONENT = "RedirectResolver"

# Archive rewrite prefix: /web/<timestamp>[<flag>_]/<original>
ARCHIVE_PREFIX_PATTERN = re.compile(
    r"^(?:https?://)?(?:web\.archive\.org)?/web/\d+(?:[a-z]{2}_)?/(.+)$",
    re.IGNORECASE,
)

FALLBACK_META_PATTERN = re.compile(
    r"<meta\s+http-equiv=[\"']?refresh[\"']?\s+content=[\"']?\d+;\s*url=([^\"'>]+)[\"']?\s*/?>",
    re.IGNORECASE,
)

FALLBACK_JS_PATTERN = re.compile(
    r"(?:window\.location|location\.href)\s*=\s*[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)


COLLAPSED_SCHEME_PATTERN = re.compile(r"^(https?):/(?!/)", re.IGNORECASE)


def unwrap_archive_url(location: str) -> str:
    """Strip every nested ``web.archive.org/web/<ts>/`` prefix, keeping the inner URL."""
    location = location.strip()
    found = ARCHIVE_PREFIX_PATTERN.match(location)
    while found:
        # the archive sometimes collapses "http://" to "http:/"
        location = COLLAPSED_SCHEME_PATTERN.sub(r"\1://", found.group(1))
        found = ARCHIVE_PREFIX_PATTERN.match(location)
    return location


def normalize_location(location: str, original_url: str) -> str:
    """
    Turn a ``Location`` header into an absolute target URL.

    Archive-rewritten locations are unwrapped to the URL they point at,
    relative paths resolve against the original domain and a missing scheme
    defaults to ``http://``.
    """
    return normalize_url(unwrap_archive_url(location), original_url)


def port_heuristic_target(original_url: str) -> Optional[str]:
    """
    Guess where a capture with an explicit port redirected to.

    Port 80 toggles ``www``; port 443 upgrades the bare domain to https;
    any other port drops to the bare domain over http.
    """
    candidate = original_url if "://" in original_url else f"http://{original_url}"
    try:
        parsed = urlparse(candidate)
        port = parsed.port
    except ValueError:
        return None
    if port is None or not parsed.hostname:
        return None

    hostname = parsed.hostname
    bare = re.sub(r"^www\.", "", hostname)

    if port == 80:
        if hostname.startswith("www."):
            return f"http://{bare}"
        return f"http://www.{bare}"
    if port == 443:
        return f"https://{bare}"
    return f"http://{bare}"


class RedirectResolver:
    """Resolves the redirect target of archived snapshots."""

    def __init__(
        self,
        client: ArchiveClient,
        detector: ClientRedirectDetector,
        cache: Optional[TTLCache] = None,
        monitor: Optional[NetworkHealthMonitor] = None,
        cache_config: Optional[CacheConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._client = client
        self._detector = detector
        self._cache = cache
        self._monitor = monitor
        self._cache_config = cache_config or CacheConfig()
        self._logger = logger

    @staticmethod
    def cache_key(timestamp: str, original_url: str) -> str:
        return f"redirect-target:{timestamp}:{original_url}"

    async def resolve(self, timestamp: str, original_url: str) -> Optional[RedirectInfo]:
        """
        Resolve the redirect target of one archived capture.

        Args:
            timestamp: 14-digit capture timestamp
            original_url: URL as recorded by the archive

        Returns:
            RedirectInfo, or None when no target could be determined
        """
        key = self.cache_key(timestamp, original_url)
        if self._cache is not None and self._cache.has(key):
            return self._cache.get(key)

        snapshot_url = self._client.snapshot_url(timestamp, original_url)
        self._debug(f"Checking redirect header from: {snapshot_url}")

        try:
            response = await self._client.fetch_once(snapshot_url, follow_redirects=False)
        except WaybackCheckerError as e:
            self._debug(f"Error checking header: {e.message}", {"url": snapshot_url})
            if self._monitor:
                self._monitor.record_error()
            return self._remember(key, None)

        return self._remember(key, self._classify(response, original_url))

    def _classify(self, response: ArchiveResponse, original_url: str) -> Optional[RedirectInfo]:
        status = str(response.status)

        if not status.startswith("3"):
            self._debug(f"Not a 3XX redirect: status code {status}")
            if status.startswith("2"):
                return self._client_side(response.text(), original_url, status)
            return None

        location = response.header("location")
        if location:
            target = normalize_location(location, original_url)
            self._debug(f"Found Location header: {location} -> {target}")
            return RedirectInfo(target_url=target, status_code=status)

        body = response.text() or ""
        found = self._client_side(body, original_url, status)
        if found is not None:
            return found

        for pattern in (FALLBACK_META_PATTERN, FALLBACK_JS_PATTERN):
            match = pattern.search(body)
            if match:
                target = normalize_url(match.group(1), original_url)
                self._debug(f"Found redirect in page content: {target}")
                return RedirectInfo(target_url=target, status_code=status, client_side=True)

        target = port_heuristic_target(original_url)
        if target is not None:
            self._debug(f"Assuming standard redirect for explicit port: {target}")
            return RedirectInfo(target_url=target, status_code=status)

        return None

    def _client_side(self, html: str, original_url: str, status: str) -> Optional[RedirectInfo]:
        detail = self._detector.detect(html or "", original_url)
        if detail is None:
            return None
        self._debug(f"Found client-side redirect: {detail.message}")
        return RedirectInfo(
            target_url=detail.target_url,
            status_code=status,
            client_side=True,
            detail=detail,
        )

    def _remember(self, key: str, info: Optional[RedirectInfo]) -> Optional[RedirectInfo]:
        if self._cache is not None:
            ttl = (
                self._cache_config.default_ttl_seconds
                if info is not None
                else self._cache_config.negative_ttl_seconds
            )
            self._cache.set(key, info, ttl)
        return info

    def _debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)
