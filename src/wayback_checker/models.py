"""
Data models for the Wayback redirect checker.

This module defines the data structures for archive snapshots, buffered
archive responses, redirect classification results, and the final report.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from .enums import BodyKind, RedirectKind
from .exceptions import ProtocolError


@dataclass(frozen=True)
class Snapshot:
    """One capture listed by the CDX index."""

    timestamp: str  # 14-digit YYYYMMDDHHMMSS
    original_url: str
    status_code: str = ""
    digest: str = ""

    @property
    def key(self) -> tuple[str, str]:
        """Uniqueness key used for deduplication."""
        return (self.timestamp, self.original_url)

    @classmethod
    def from_row(cls, row: list) -> "Snapshot":
        """Build a snapshot from a CDX row ``[timestamp, original, statuscode, digest]``."""
        values = [str(value) if value is not None else "" for value in row]
        values += [""] * (4 - len(values))
        return cls(
            timestamp=values[0],
            original_url=values[1],
            status_code=values[2],
            digest=values[3],
        )


@dataclass(frozen=True)
class ArchiveResponse:
    """
    Fully buffered archive response.

    The body is decoded once and stored as plain data so cached responses can
    be read any number of times.
    """

    status: int
    headers: dict[str, str]
    body_kind: BodyKind
    body: Any
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Return the decoded JSON body, parsing text bodies on demand."""
        if self.body_kind == BodyKind.JSON:
            return self.body
        try:
            return json.loads(self.body)
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                code="invalid_json",
                message=f"Response from {self.url or 'archive'} is not valid JSON: {e}",
                details={"url": self.url, "status": self.status},
            )

    def text(self) -> str:
        """Return the body as text."""
        if self.body_kind == BodyKind.JSON:
            return json.dumps(self.body)
        return self.body

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class ClientRedirectDetail:
    """A redirect found in page content rather than in HTTP headers."""

    kind: RedirectKind
    target_url: str
    message: str
    delay_seconds: Optional[float] = None


@dataclass(frozen=True)
class RedirectInfo:
    """Resolved redirect target for one archived snapshot."""

    target_url: str
    status_code: str
    client_side: bool = False
    detail: Optional[ClientRedirectDetail] = None


@dataclass(frozen=True)
class ClientRedirectFinding:
    """A client-side redirect discovered in a 200 snapshot."""

    timestamp: str
    original_url: str
    detail: ClientRedirectDetail
    formatted_date: str


@dataclass
class ExecutionTime:
    """Wall-clock duration of a check."""

    seconds: str  # two decimals, e.g. "12.34"
    formatted: str  # HH:MM:SS
    ms: float

    def to_dict(self) -> dict:
        return {"seconds": self.seconds, "formatted": self.formatted, "ms": self.ms}


@dataclass
class DomainHistoryResult:
    """Complete result of a domain history check."""

    domain: str
    logs: list[str]
    message_chunks: list[str]
    execution_time: ExecutionTime
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        """Serialize using the field names of the request-layer payload."""
        return {
            "domain": self.domain,
            "logs": list(self.logs),
            "messageChunks": list(self.message_chunks),
            "executionTime": self.execution_time.to_dict(),
        }
