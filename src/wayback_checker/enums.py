"""
Enumeration types for the Wayback redirect checker.

These enums provide type-safe constants for redirect kinds, body encodings,
error kinds, and logging levels throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        """Numeric rank used for level filtering."""
        return _SEVERITY[self.value]


_SEVERITY = {"debug": 10, "info": 20, "warn": 30, "error": 40}


class RedirectKind(Enum):
    """Kinds of client-side redirects recognised in page content."""

    META_REFRESH = "meta-refresh"
    JS_REDIRECT = "js-redirect"
    JS_TIMEOUT_REDIRECT = "js-timeout-redirect"


class BodyKind(Enum):
    """How a buffered archive response body was decoded."""

    JSON = "json"
    TEXT = "text"


class DomainValidationErrorCode(Enum):
    """Error codes for domain validation failures."""

    EMPTY_INPUT = "empty_input"
    FORBIDDEN_CHARS = "forbidden_chars"
    IDNA_ERROR = "idna_error"
    MISSING_TLD = "missing_tld"


class ErrorKind(Enum):
    """Error kinds reported by the request layer."""

    INVALID_REQUEST = "invalid_request"
    INVALID_DOMAIN = "invalid_domain"
    CHECK_FAILED = "check_failed"
    INTERNAL_ERROR = "internal_error"

