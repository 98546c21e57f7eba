"""Error taxonomy for the workbench core and transport error classification.

Every failure in the core resolves to one of the exceptions below. None of
them is fatal: the controller turns them into a visible message or a silent
feature degradation.

``describe_transport_error`` inspects an ``httpx`` exception (or a malformed
response) and returns a short machine-readable category plus a user-friendly
message, so the UI never shows raw tracebacks.
"""

from typing import Optional, Tuple

import httpx


class WorkbenchError(Exception):
    """Base class for all workbench errors."""


class ValidationError(WorkbenchError):
    """Missing file, query text or session. Raised before any network call."""


class UploadError(WorkbenchError):
    """Upload failed; the previous session is retained.

    ``reason`` is one of "missing_file", "busy", "transport", "rejected".
    """

    def __init__(self, message: str, reason: str = "rejected"):
        super().__init__(message)
        self.reason = reason


class QueryError(WorkbenchError):
    """SQL generation failed; the previous successful result is preserved."""

    def __init__(self, message: str, category: str = "unknown"):
        super().__init__(message)
        self.category = category


class PersistenceError(WorkbenchError):
    """Durable storage is corrupt or unavailable. Never surfaced to the user."""


class CapabilityError(WorkbenchError):
    """Speech recognition is not available in this environment."""


def _response_detail(response: httpx.Response) -> Optional[str]:
    """Pull a backend error message out of a JSON error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def describe_transport_error(exc: BaseException) -> Tuple[str, str]:
    """Classify a transport-level exception into a category and message.

    Returns
    -------
    (category, user_message) where *category* is one of:
        "timeout", "network_error", "rejected", "server_error",
        "bad_response", "unknown"
    """
    # --------------------------------------------------
    # Timeout (checked first, httpx timeouts are also transport errors)
    # --------------------------------------------------
    if isinstance(exc, httpx.TimeoutException):
        return (
            "timeout",
            "The backend did not answer in time. Try again.",
        )

    # --------------------------------------------------
    # Connection / DNS / protocol failures
    # --------------------------------------------------
    if isinstance(exc, httpx.TransportError):
        return (
            "network_error",
            "Cannot reach the backend. Check that it is running and API_URL is correct.",
        )

    # --------------------------------------------------
    # HTTP status errors: 4xx is a rejection, 5xx a server fault
    # --------------------------------------------------
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _response_detail(exc.response)
        if 400 <= status < 500:
            return ("rejected", detail or f"The backend rejected the request (HTTP {status}).")
        return ("server_error", detail or f"The backend failed to process the request (HTTP {status}).")

    # --------------------------------------------------
    # Body that is not the JSON we expect
    # --------------------------------------------------
    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return (
            "bad_response",
            "The backend returned a response the workbench could not read.",
        )

    # --------------------------------------------------
    # Fallback
    # --------------------------------------------------
    return (
        "unknown",
        "Unexpected error. Check logs for details.",
    )
