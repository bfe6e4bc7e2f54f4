"""
Request-layer contract for domain history checks.

Framework-free: a web route (or anything else) decodes its request body,
passes it to ``handle_check_request`` and turns the returned
``(status, payload)`` pair into a response.
"""

import json
from typing import Any, Optional, Union

from .enums import ErrorKind
from .orchestrator import CheckOrchestrator

ResponseTuple = tuple[int, dict]


def error_response(status: int, kind: ErrorKind, message: str, data: Optional[dict] = None) -> ResponseTuple:
    payload: dict[str, Any] = {"ok": False, "error": {"kind": kind.value, "message": message}}
    if data is not None:
        payload["data"] = data
    return status, payload


def parse_request_body(raw: Union[str, bytes, None]) -> tuple[Optional[dict], Optional[ResponseTuple]]:
    """
    Decode a JSON request body.

    Returns:
        ``(body, None)`` on success, ``(None, error_response)`` otherwise
    """
    if raw is None or (isinstance(raw, (str, bytes)) and not raw.strip()):
        return None, error_response(400, ErrorKind.INVALID_REQUEST, "Request body is empty")
    try:
        body = json.loads(raw)
    except (TypeError, ValueError) as e:
        return None, error_response(400, ErrorKind.INVALID_REQUEST, f"Malformed JSON body: {e}")
    return body, None


async def handle_check_request(body: Any, orchestrator: CheckOrchestrator) -> ResponseTuple:
    """
    Run a check for ``{"domain": "..."}``.

    Status codes:
        400 for a missing, blank or non-string domain (``invalid_request``)
        or one that fails validation (``invalid_domain``); 200 with
        ``ok: false`` and kind ``check_failed`` when the report collapsed into
        an error entry; 500 (``internal_error``) when the check raised.
    """
    if not isinstance(body, dict):
        return error_response(400, ErrorKind.INVALID_REQUEST, "Request body must be a JSON object")

    domain = body.get("domain")
    if not isinstance(domain, str) or not domain.strip():
        return error_response(400, ErrorKind.INVALID_REQUEST, "Domain is required")

    validation = orchestrator.domain_validator.validate(domain)
    if not validation.valid:
        return error_response(400, ErrorKind.INVALID_DOMAIN, validation.error.message)

    try:
        result = await orchestrator.check_domain_history(validation.canonical_domain)
    except Exception as e:
        return error_response(500, ErrorKind.INTERNAL_ERROR, f"Failed to check domain history: {e}")

    if not result.ok:
        return error_response(200, ErrorKind.CHECK_FAILED, result.error, data=result.to_dict())

    return 200, {"ok": True, "data": result.to_dict()}
