"""Exception hierarchy for onionnet.

Every failure of a protocol operation is reported as one of these types.
Backend exceptions (cryptography, aiohttp, json, base64) are wrapped at the
operation that raised them, so callers only ever handle this taxonomy.
"""

from __future__ import annotations

from typing import Any


class OnionError(Exception):
    """Base exception for all onionnet errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(OnionError):
    """Malformed registration, envelope shape or request body.

    Raised when:
    - A required field is missing or has the wrong type
    - A base64 field does not decode
    - An exported key cannot be imported
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:64]
        super().__init__(message, details)
        self.field = field
        self.value = value


class CryptoError(OnionError):
    """Unseal, decrypt or authentication failure."""


class ProtocolError(OnionError):
    """Envelope is well-formed but wrong for this hop's role.

    The usual case is an envelope without a wrapped key arriving at a relay:
    the message is either out of order or misaddressed.
    """


class InsufficientRelaysError(OnionError):
    """The directory holds fewer relays than the requested path length."""

    def __init__(self, available: int, required: int):
        super().__init__(
            f"need {required} relays for a path, directory has {available}",
            {"available": available, "required": required},
        )
        self.available = available
        self.required = required


class DeliveryError(OnionError):
    """Downstream hop unreachable or returned a failure."""

    def __init__(self, message: str, address: str | None = None, status: int | None = None):
        details: dict[str, Any] = {}
        if address:
            details["address"] = address
        if status is not None:
            details["status"] = status
        super().__init__(message, details)
        self.address = address
        self.status = status


_HTTP_STATUS: dict[type[OnionError], int] = {
    ValidationError: 400,
    ProtocolError: 400,
    CryptoError: 400,
    InsufficientRelaysError: 503,
    DeliveryError: 502,
}


def http_status_for(exc: BaseException) -> int:
    """HTTP status a service boundary reports for ``exc``."""
    for exc_type, status in _HTTP_STATUS.items():
        if isinstance(exc, exc_type):
            return status
    return 500


def error_body(exc: BaseException) -> dict[str, Any]:
    """Standard error response body: ``{"success": false, "error": {...}}``."""
    if isinstance(exc, OnionError):
        code, message = exc.__class__.__name__, exc.message
    else:
        code, message = "InternalError", "internal error"
    return {"success": False, "error": {"code": code, "message": message}}
