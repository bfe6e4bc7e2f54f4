"""
Domain validation and normalization module.

Accepts what users paste (``https://www.Example.com/path``, ``bücher.de``)
and reduces it to the canonical lowercase ASCII host the archive is queried
with.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from .enums import DomainValidationErrorCode
from .exceptions import ValidationError


# Forbidden characters in domain names (control chars, spaces, special symbols)
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


@dataclass
class DomainValidationError:
    """Structured error information for domain validation failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict


@dataclass
class DomainValidationResult:
    """Result of domain validation operation."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]


def strip_url_parts(raw: str) -> str:
    """
    Reduce a pasted URL to its host part.

    >>> strip_url_parts("https://www.example.com:8080/path?q=1")
    'www.example.com'
    """
    value = SCHEME_PATTERN.sub("", raw.strip())
    value = re.split(r"[/?#]", value, maxsplit=1)[0]
    value = value.rsplit("@", 1)[-1]
    value = re.sub(r":\d*$", "", value)
    return value.rstrip(".")


class DomainValidator:
    """
    Validates and normalizes domain names.

    Handles:
    - Removal of scheme, credentials, port, path and query
    - Conversion to lowercase canonical form
    - IDNA encoding for international characters
    - Rejection of forbidden characters
    - Rejection of names without a TLD
    """

    def __init__(self, strip_www: bool = False) -> None:
        """
        Initialize validator.

        Args:
            strip_www: Drop a leading ``www.`` from the canonical form
        """
        self._strip_www = strip_www

    def validate(self, raw_domain: str) -> DomainValidationResult:
        """
        Validate and normalize a domain string.

        Args:
            raw_domain: The raw domain string or URL to validate

        Returns:
            DomainValidationResult with validation status and canonical form or error
        """
        if not raw_domain or not raw_domain.strip():
            return self._invalid(
                DomainValidationErrorCode.EMPTY_INPUT,
                "Domain input is empty",
                {"raw_input": raw_domain},
            )

        domain = strip_url_parts(raw_domain)

        if FORBIDDEN_CHARS_PATTERN.search(domain):
            return self._invalid(
                DomainValidationErrorCode.FORBIDDEN_CHARS,
                "Domain contains forbidden characters",
                {
                    "raw_input": raw_domain,
                    "forbidden_chars": FORBIDDEN_CHARS_PATTERN.findall(domain),
                },
            )

        try:
            canonical = self.normalize_to_canonical(domain)
        except ValidationError as e:
            return self._invalid(DomainValidationErrorCode.IDNA_ERROR, e.message, e.details)

        if self._strip_www and canonical.startswith("www."):
            canonical = canonical[len("www."):]

        if "." not in canonical or not canonical.rsplit(".", 1)[1]:
            return self._invalid(
                DomainValidationErrorCode.MISSING_TLD,
                "Domain has no top-level domain",
                {"raw_input": raw_domain, "canonical": canonical},
            )

        return DomainValidationResult(valid=True, canonical_domain=canonical, error=None)

    def normalize_to_canonical(self, domain: str) -> str:
        """
        Convert domain to canonical form (lowercase, IDNA-encoded).

        Raises:
            ValidationError: If IDNA encoding fails
        """
        domain_lower = domain.lower()

        if not any(ord(c) > 127 for c in domain_lower):
            return domain_lower

        try:
            return idna.encode(domain_lower, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"domain": domain, "idna_error": str(e)},
            )

    @staticmethod
    def _invalid(
        code: DomainValidationErrorCode, message: str, details: dict
    ) -> DomainValidationResult:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(code=code, message=message, details=details),
        )
