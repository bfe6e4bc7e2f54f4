"""
Exception classes for the Wayback redirect checker.

All exceptions inherit from WaybackCheckerError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class WaybackCheckerError(Exception):
    """Base exception for all Wayback checker errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(WaybackCheckerError):
    """Raised when an input domain fails validation."""

    pass


class NetworkError(WaybackCheckerError):
    """Raised for transient network failures (connection errors, unacceptable status codes)."""

    pass


class RequestTimeoutError(NetworkError):
    """Raised when a single archive request exceeds its deadline."""

    pass


class UpstreamUnavailableError(NetworkError):
    """Raised when every retry of an archive request has failed."""

    pass


class ProtocolError(WaybackCheckerError):
    """Raised when an archive response body cannot be decoded."""

    pass


class ConfigurationError(WaybackCheckerError):
    """Raised when configuration values are unusable."""

    pass
