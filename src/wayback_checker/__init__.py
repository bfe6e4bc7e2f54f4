"""
Wayback Checker - redirect history of a domain from the Wayback Machine.

This package queries the Internet Archive's CDX index for a domain, resolves
where its archived captures redirected to (HTTP 3xx and client-side meta or
JavaScript redirects) and renders a chunked, human-readable report.
"""

__version__ = "0.1.0"
__author__ = "Wayback Checker Team"

from wayback_checker.exceptions import (
    WaybackCheckerError,
    ValidationError,
    NetworkError,
    RequestTimeoutError,
    UpstreamUnavailableError,
    ProtocolError,
    ConfigurationError,
)
from wayback_checker.enums import (
    LogLevel,
    RedirectKind,
    BodyKind,
    ErrorKind,
    DomainValidationErrorCode,
)
from wayback_checker.config import (
    RetryConfig,
    ArchiveConfig,
    ConcurrencyConfig,
    HealthConfig,
    CacheConfig,
    ReportConfig,
    LoggingConfig,
    SystemConfig,
)
from wayback_checker.models import (
    Snapshot,
    ArchiveResponse,
    ClientRedirectDetail,
    RedirectInfo,
    ClientRedirectFinding,
    ExecutionTime,
    DomainHistoryResult,
)
from wayback_checker.audit_logger import (
    AuditLogger,
    LogEntry,
)
from wayback_checker.cache import TTLCache
from wayback_checker.network_monitor import (
    NetworkHealthMonitor,
    NetworkHealthState,
)
from wayback_checker.retry_manager import RetryManager
from wayback_checker.archive_client import ArchiveClient
from wayback_checker.executor import (
    BoundedExecutor,
    ExecutorState,
)
from wayback_checker.snapshots import (
    SnapshotRetriever,
    dedupe_snapshots,
    sort_newest_first,
)
from wayback_checker.client_redirects import (
    ClientRedirectDetector,
    RedirectStrategy,
    MetaRefreshStrategy,
    JavaScriptLocationStrategy,
    TimedJavaScriptStrategy,
)
from wayback_checker.redirect_resolver import RedirectResolver
from wayback_checker.redirect_filters import RedirectTargetFilter
from wayback_checker.page_titles import (
    PageTitleFetcher,
    PageTitleSection,
)
from wayback_checker.formatting import (
    format_wayback_timestamp,
    split_into_chunks,
    label_chunks,
    Stopwatch,
)
from wayback_checker.context import CheckContext
from wayback_checker.domain_validator import (
    DomainValidator,
    DomainValidationResult,
    DomainValidationError,
)
from wayback_checker.orchestrator import CheckOrchestrator
from wayback_checker.api import (
    handle_check_request,
    parse_request_body,
)
from wayback_checker.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    load_config_from_env,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "WaybackCheckerError",
    "ValidationError",
    "NetworkError",
    "RequestTimeoutError",
    "UpstreamUnavailableError",
    "ProtocolError",
    "ConfigurationError",
    # Enums
    "LogLevel",
    "RedirectKind",
    "BodyKind",
    "ErrorKind",
    "DomainValidationErrorCode",
    # Configuration
    "RetryConfig",
    "ArchiveConfig",
    "ConcurrencyConfig",
    "HealthConfig",
    "CacheConfig",
    "ReportConfig",
    "LoggingConfig",
    "SystemConfig",
    # Models
    "Snapshot",
    "ArchiveResponse",
    "ClientRedirectDetail",
    "RedirectInfo",
    "ClientRedirectFinding",
    "ExecutionTime",
    "DomainHistoryResult",
    # Infrastructure
    "AuditLogger",
    "LogEntry",
    "TTLCache",
    "NetworkHealthMonitor",
    "NetworkHealthState",
    "RetryManager",
    "ArchiveClient",
    "BoundedExecutor",
    "ExecutorState",
    "CheckContext",
    # Snapshots and redirects
    "SnapshotRetriever",
    "dedupe_snapshots",
    "sort_newest_first",
    "ClientRedirectDetector",
    "RedirectStrategy",
    "MetaRefreshStrategy",
    "JavaScriptLocationStrategy",
    "TimedJavaScriptStrategy",
    "RedirectResolver",
    "RedirectTargetFilter",
    "PageTitleFetcher",
    "PageTitleSection",
    # Formatting
    "format_wayback_timestamp",
    "split_into_chunks",
    "label_chunks",
    "Stopwatch",
    # Domain Validator
    "DomainValidator",
    "DomainValidationResult",
    "DomainValidationError",
    # Orchestrator and request layer
    "CheckOrchestrator",
    "handle_check_request",
    "parse_request_body",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "load_config_from_env",
    "save_config_to_file",
]
