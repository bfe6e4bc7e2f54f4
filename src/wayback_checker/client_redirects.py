"""
Client-side redirect detection in archived page content.

Redirects implemented in markup or script rather than in HTTP headers are
found by an ordered list of pattern strategies; the first strategy that
matches wins:

1. ``<meta http-equiv="refresh" content="N;url=...">``
2. assignment to ``window``/``document``/``top``/``self`` ``.location``
   (directly or through ``.replace()``/``.assign()``)
3. a ``setTimeout`` whose body assigns a location property

Targets are normalized against the original URL's domain.
"""

import hashlib
import re
from typing import Optional, Protocol, Sequence, runtime_checkable
from urllib.parse import urlparse

from .audit_logger import AuditLogger
from .cache import TTLCache
from .config import CacheConfig
from .enums import RedirectKind
from .formatting import format_delay
from .models import ClientRedirectDetail

COMPONENT = "ClientRedirectDetector"


def _with_scheme(url: str, scheme: str) -> str:
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"{scheme}://{url}"


def extract_domain(url: str) -> str:
    """Hostname of ``url`` without a leading ``www.``; ``url`` itself if unparsable."""
    try:
        hostname = urlparse(_with_scheme(url, "https")).hostname
    except ValueError:
        return url
    if not hostname:
        return url
    return re.sub(r"^www\.", "", hostname)


def extract_path(url: str) -> str:
    """Path plus query string of ``url``, ``/`` if unparsable."""
    try:
        parsed = urlparse(_with_scheme(url, "https"))
    except ValueError:
        return "/"
    return parsed.path + (f"?{parsed.query}" if parsed.query else "")


def normalize_url(url: str, original_url: str) -> str:
    """
    Make a redirect target absolute.

    Absolute paths resolve against the original URL's domain over http;
    anything without a scheme gets ``http://``.
    """
    url = url.strip()
    if url.startswith("//"):
        return f"http:{url}"
    if url.startswith("/"):
        return f"http://{extract_domain(original_url)}{url}"
    if not url.startswith("http"):
        return f"http://{url}"
    return url


@runtime_checkable
class RedirectStrategy(Protocol):
    """A single client-side redirect matcher."""

    kind: RedirectKind

    def match(self, html: str, original_url: str) -> Optional[ClientRedirectDetail]:
        ...


class MetaRefreshStrategy:
    """``<meta http-equiv="refresh">`` with an optional ``url=`` target."""

    kind = RedirectKind.META_REFRESH

    PATTERN = re.compile(
        r"<meta\s+http-equiv=[\"']?refresh[\"']?\s+content=[\"']?\s*(\d+)\s*"
        r"(?:;\s*url\s*=\s*[\"']?([^\"'>]+))?[\"']?\s*/?>",
        re.IGNORECASE,
    )

    def match(self, html: str, original_url: str) -> Optional[ClientRedirectDetail]:
        found = self.PATTERN.search(html)
        if not found:
            return None

        delay = int(found.group(1))
        target = normalize_url(found.group(2) or original_url, original_url)
        return ClientRedirectDetail(
            kind=self.kind,
            target_url=target,
            delay_seconds=float(delay),
            message=f"Meta refresh redirect to {target} after {delay} seconds",
        )


class JavaScriptLocationStrategy:
    """Direct assignment to a location object, with optional countdown delay."""

    kind = RedirectKind.JS_REDIRECT

    PATTERNS = [
        re.compile(pattern, re.IGNORECASE)
        for owner in ("window", "document", "top", "self")
        for pattern in (
            owner + r"\.location(?:\.href)?\s*=\s*[\"']([^\"']+)[\"']",
            owner + r"\.location\.(?:replace|assign)\(\s*[\"']([^\"']+)[\"']\s*\)",
        )
    ]

    COUNTDOWN_PATTERNS = [
        re.compile(
            r"setInterval\s*\(\s*function\s*\(\s*\)\s*\{[^}]*countdown[^}]*\}\s*,\s*1000\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
        re.compile(
            r"setTimeout\s*\(\s*function\s*\(\s*\)\s*\{[^}]*(?:countdown|timer)[^}]*\}\s*,\s*1000\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
        re.compile(r"(?:const|let|var)\s+(?:countdown|timer)\s*=\s*(\d+)", re.IGNORECASE),
    ]

    SECONDS_PATTERN = re.compile(r"(\d+)\s*(?:seconds?|secs?)\b", re.IGNORECASE)

    def match(self, html: str, original_url: str) -> Optional[ClientRedirectDetail]:
        for pattern in self.PATTERNS:
            found = pattern.search(html)
            if not found:
                continue

            target = normalize_url(found.group(1), original_url)
            delay = self._countdown_seconds(html)
            if delay is None:
                message = f"JavaScript redirect to {target}"
            else:
                message = f"JavaScript redirect to {target} after {format_delay(delay)} seconds"
            return ClientRedirectDetail(
                kind=self.kind,
                target_url=target,
                delay_seconds=delay,
                message=message,
            )
        return None

    def _countdown_seconds(self, html: str) -> Optional[float]:
        if not any(pattern.search(html) for pattern in self.COUNTDOWN_PATTERNS):
            return None
        seconds = self.SECONDS_PATTERN.search(html)
        if seconds is None:
            return None
        return float(seconds.group(1))


class TimedJavaScriptStrategy:
    """``setTimeout`` wrapping a location assignment; delay given in ms."""

    kind = RedirectKind.JS_TIMEOUT_REDIRECT

    _ASSIGN = r"(?:location|window|document)\.(?:location|href)\s*=\s*"

    PATTERNS = [
        re.compile(
            r"setTimeout\s*\(\s*function\s*\(\s*\)\s*\{[^}]*" + _ASSIGN
            + r"[\"']([^\"']+)[\"'][^}]*\}\s*,\s*(\d+)\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
        re.compile(
            r"setTimeout\s*\(\s*\(\s*\)\s*=>\s*\{[^}]*" + _ASSIGN
            + r"[\"']([^\"']+)[\"'][^}]*\}\s*,\s*(\d+)\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
        re.compile(
            r"setTimeout\s*\(\s*[\"']" + _ASSIGN
            + r"\\?[\"']([^\"']+)\\?[\"'][\s\"']*,\s*(\d+)\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
    ]

    def match(self, html: str, original_url: str) -> Optional[ClientRedirectDetail]:
        for pattern in self.PATTERNS:
            found = pattern.search(html)
            if not found:
                continue

            target = normalize_url(found.group(1), original_url)
            delay = int(found.group(2)) / 1000
            return ClientRedirectDetail(
                kind=self.kind,
                target_url=target,
                delay_seconds=delay,
                message=f"JavaScript timed redirect to {target} after {format_delay(delay)} seconds",
            )
        return None


DEFAULT_STRATEGIES: tuple = (
    MetaRefreshStrategy(),
    JavaScriptLocationStrategy(),
    TimedJavaScriptStrategy(),
)


class ClientRedirectDetector:
    """
    Runs the strategy list over page HTML and memoizes the outcome.

    Results, including "nothing found", are cached under the original URL and
    a SHA-256 digest of the page, so two different pages never share an entry.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        cache_config: Optional[CacheConfig] = None,
        logger: Optional[AuditLogger] = None,
        strategies: Optional[Sequence[RedirectStrategy]] = None,
    ) -> None:
        self._cache = cache
        self._cache_config = cache_config or CacheConfig()
        self._logger = logger
        self._strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    @staticmethod
    def cache_key(html: str, original_url: str) -> str:
        digest = hashlib.sha256(html.encode("utf-8", errors="replace")).hexdigest()
        return f"client-side-redirect:{original_url}:{digest}"

    def detect(self, html: str, original_url: str) -> Optional[ClientRedirectDetail]:
        """
        Find a client-side redirect in ``html``.

        Args:
            html: Page content
            original_url: URL the page was captured from

        Returns:
            The first matching redirect, or None
        """
        key = self.cache_key(html, original_url)
        if self._cache is not None and self._cache.has(key):
            return self._cache.get(key)

        detail = None
        for strategy in self._strategies:
            detail = strategy.match(html, original_url)
            if detail is not None:
                break

        if detail is not None:
            if self._logger:
                self._logger.debug(COMPONENT, f"Found {detail.kind.value}: {detail.message}")
            ttl = self._cache_config.default_ttl_seconds
        else:
            ttl = self._cache_config.negative_ttl_seconds

        if self._cache is not None:
            self._cache.set(key, detail, ttl)
        return detail
