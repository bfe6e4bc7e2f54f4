"""
Noise filtering for redirect targets.

Many archived redirects are not interesting: an http to https upgrade, a
``www`` toggle, a login page that carries the original domain in its query,
or a bounce to a big platform. ``RedirectTargetFilter`` keeps only redirects
that move a main-domain URL somewhere meaningful.
"""

import re
from collections import Counter
from typing import Optional, Sequence
from urllib.parse import unquote, urlparse

from .audit_logger import AuditLogger
from .client_redirects import extract_domain, extract_path
from .config import DEFAULT_COMMON_SERVICE_DOMAINS, DEFAULT_IGNORED_DOMAINS

COMPONENT = "RedirectTargetFilter"

MAIN_PATH_PATTERN = re.compile(r"^/?(index\.(html|php|asp|jsp))?$", re.IGNORECASE)
EXPLICIT_PORT_PATTERN = re.compile(r"^https?://[^/]+:(\d+)", re.IGNORECASE)
DOMAIN_PATTERN = re.compile(r"\b(?:[a-z0-9][-a-z0-9]*\.)+[a-z]{2,}\b", re.IGNORECASE)


def _ensure_scheme(url: str) -> str:
    return url if url.startswith("http") else f"http://{url}"


def is_main_domain_url(url: str) -> bool:
    """True for a bare domain or its index page, with no query or fragment."""
    try:
        parsed = urlparse(_ensure_scheme(url))
    except ValueError:
        return False
    path = parsed.path[:-1] if parsed.path.endswith("/") else parsed.path
    return bool(MAIN_PATH_PATTERN.match(path)) and not parsed.query and not parsed.fragment


def has_explicit_port(url: str) -> bool:
    return EXPLICIT_PORT_PATTERN.match(_ensure_scheme(url)) is not None


def is_protocol_or_www_difference(first: str, second: str) -> bool:
    """True when two URLs differ only in scheme or a leading ``www.``."""
    first, second = _ensure_scheme(first), _ensure_scheme(second)
    if has_explicit_port(first) or has_explicit_port(second):
        return False
    try:
        a, b = urlparse(first), urlparse(second)
    except ValueError:
        return False

    host_a = re.sub(r"^www\.", "", a.hostname or "")
    host_b = re.sub(r"^www\.", "", b.hostname or "")
    if host_a != host_b:
        return False

    def path_and_query(parsed) -> str:
        path = parsed.path or "/"
        return path + (f"?{parsed.query}" if parsed.query else "")

    return path_and_query(a) == path_and_query(b)


def contains_original_domain_as_parameter(target_url: str, original_domain: str) -> bool:
    try:
        parsed = urlparse(_ensure_scheme(target_url))
    except ValueError:
        return False
    clean_domain = re.sub(r"^www\.", "", original_domain.lower())
    if not clean_domain:
        return False
    return clean_domain in unquote(parsed.query).lower() or clean_domain in parsed.path.lower()


def find_most_frequent_domain(domains: Sequence[str]) -> Optional[tuple[str, int]]:
    """Most common entry and its count; ties go to the first seen."""
    if not domains:
        return None
    return Counter(domains).most_common(1)[0]


class RedirectTargetFilter:
    """Decides whether a redirect target is worth reporting."""

    def __init__(
        self,
        ignored_domains: Optional[Sequence[str]] = None,
        common_service_domains: Optional[Sequence[str]] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._ignored = [d.lower() for d in (ignored_domains or DEFAULT_IGNORED_DOMAINS)]
        self._common = [d.lower() for d in (common_service_domains or DEFAULT_COMMON_SERVICE_DOMAINS)]
        self._logger = logger

    def is_ignored_domain(self, domain: str) -> bool:
        domain = domain.lower()
        return any(domain == ignored or domain.endswith("." + ignored) for ignored in self._ignored)

    def is_common_domain(self, domain: str) -> bool:
        domain = domain.lower()
        return any(common in domain for common in self._common)

    def is_valid_redirect_target(self, target_url: str, original_url: str) -> bool:
        """
        Decide whether a redirect from ``original_url`` to ``target_url`` is meaningful.

        Kept: redirects from a main-domain URL to an explicit port, to another
        domain, to a sub or parent domain, or to a sub-directory of the same
        domain. Dropped: everything else, including scheme or ``www`` only
        changes, targets that carry the original domain as a parameter and
        targets in the ignored domain list.
        """
        target_url = _ensure_scheme(target_url)
        original_url = _ensure_scheme(original_url)

        target_domain = extract_domain(target_url).lower()
        original_domain = extract_domain(original_url).lower()

        if not is_main_domain_url(original_url):
            self._debug(f"Original URL is not main domain, ignored: {original_url}")
            return False

        if has_explicit_port(target_url):
            self._debug(f"Found redirect to explicit port: {target_url}")
            return True

        if is_protocol_or_www_difference(original_url, target_url):
            self._debug(f"Only protocol or www differs: {original_url} -> {target_url}")
            return False

        if contains_original_domain_as_parameter(target_url, original_domain):
            self._debug(f"Target carries the original domain as a parameter: {target_url}")
            return False

        if self.is_ignored_domain(target_domain):
            self._debug(f"Target domain is in ignored list: {target_domain}")
            return False

        if target_domain != original_domain:
            # covers other domains, subdomains and parent domains
            return True

        target_path = extract_path(target_url)
        if target_path != extract_path(original_url):
            if "." not in target_path and "?" not in target_path and "#" not in target_path:
                return True
            self._debug(f"Ignored redirect to specific page: {target_path}")
        return False

    def extract_domains_from_html(self, html: str, original_url: str) -> list[str]:
        """Domain names mentioned in ``html``, minus the original and common services."""
        original_domain = extract_domain(original_url).lower()
        domains = []
        for match in DOMAIN_PATTERN.finditer(html):
            domain = match.group(0).lower()
            if domain != original_domain and not self.is_common_domain(domain):
                domains.append(domain)
        return domains

    def _debug(self, message: str) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message)
