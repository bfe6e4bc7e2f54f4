"""
Configuration dataclasses for the Wayback redirect checker.

This module defines all configuration structures used throughout the system,
including retry/backoff behaviour, archive endpoints, concurrency limits,
network health thresholds, cache lifetimes, report shaping, and logging.
"""

from dataclasses import dataclass, field
from typing import Optional


DEFAULT_USER_AGENTS = [
    # Desktop browsers - Chrome
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Desktop browsers - Firefox
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/115.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/115.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/115.0",
    # Desktop browsers - Safari / Edge
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    # Mobile browsers
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (iPad; CPU OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; SM-S918B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.6099.43 Mobile Safari/537.36",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.6099.43 Mobile Safari/537.36",
]

# Redirect targets that are almost always false positives
DEFAULT_IGNORED_DOMAINS = [
    "w3.org",
    "google.com",
    "facebook.com",
    "twitter.com",
    "instagram.com",
]

# Substrings of third-party service hosts found in page markup
DEFAULT_COMMON_SERVICE_DOMAINS = [
    "google", "facebook", "twitter", "instagram", "youtube",
    "linkedin", "github", "amazonaws", "cloudfront", "cdn",
    "analytics", "tracking", "stats", "ads", "doubleclick",
    "google-analytics", "googletagmanager", "hotjar", "jquery",
    "cloudflare", "googleapis", "gstatic",
]


@dataclass
class RetryConfig:
    """Retry and backoff behaviour for archive requests."""

    max_retries: int = 5
    initial_backoff_seconds: float = 2.0
    max_backoff_seconds: float = 30.0
    backoff_multiplier: float = 1.5
    backoff_jitter: float = 0.2
    request_jitter_seconds: float = 0.5


@dataclass
class ArchiveConfig:
    """Wayback Machine endpoints and request shaping."""

    base_url: str = "https://web.archive.org"
    request_timeout_seconds: float = 180.0
    client_side_timeout_seconds: float = 60.0
    page_size: int = 1000
    page_delay_seconds: float = 1.0
    user_agents: list[str] = field(default_factory=lambda: list(DEFAULT_USER_AGENTS))


@dataclass
class ConcurrencyConfig:
    """Bounded parallel execution settings."""

    max_concurrent_requests: int = 3
    request_delay_seconds: float = 0.3
    health_pause_seconds: float = 30.0
    error_pause_seconds: float = 10.0
    degrade_after_failures: int = 3
    max_error_delay_seconds: float = 10.0


@dataclass
class HealthConfig:
    """Network health monitor thresholds."""

    error_threshold: int = 5
    warning_cooldown_seconds: float = 60.0


@dataclass
class CacheConfig:
    """Lifetimes for cached archive data and computed results."""

    default_ttl_seconds: float = 3600.0
    negative_ttl_seconds: float = 1800.0
    title_ttl_seconds: float = 86400.0


@dataclass
class ReportConfig:
    """Report shaping and cost-control knobs."""

    max_chunk_size: int = 3800
    max_snapshots_to_check: Optional[int] = None  # None = no cap
    max_client_side_snapshots: Optional[int] = None  # None = every 200 snapshot
    include_titles: bool = False
    filter_noise_targets: bool = False
    batch_delay_seconds: float = 5.0
    ignored_domains: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_DOMAINS))
    common_service_domains: list[str] = field(
        default_factory=lambda: list(DEFAULT_COMMON_SERVICE_DOMAINS)
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
