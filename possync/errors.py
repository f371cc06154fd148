"""
POSSync Structured Errors.

Every failure path in the framework converges on POSAdapterError before it
reaches a vendor adapter:
- ErrorCode: vendor-neutral taxonomy
- POSAdapterError: message, status, code, details, retryable flag
- normalize_error(): maps transport exceptions into the taxonomy
- extract_error_message() / extract_error_code(): read common vendor error bodies
"""
from __future__ import annotations
from enum import Enum
from typing import Any
import asyncio

import httpx

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

_DNS_FAILURE_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
    "no address associated",
)


class ErrorCode(str, Enum):
    # Transport
    TIMEOUT = "TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    HOST_NOT_FOUND = "HOST_NOT_FOUND"
    CONNECTION_RESET = "CONNECTION_RESET"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    OAUTH_REFRESH_FAILED = "OAUTH_REFRESH_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    # File exchange
    PATH_TRAVERSAL = "PATH_TRAVERSAL"
    UNSUPPORTED_DOCUMENT_TYPE = "UNSUPPORTED_DOCUMENT_TYPE"
    DIRECTORY_NOT_FOUND = "DIRECTORY_NOT_FOUND"
    EXPORT_FAILED = "EXPORT_FAILED"
    DESTINATION_EXISTS = "DESTINATION_EXISTS"
    # Configuration
    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_MAPPINGS = "MISSING_MAPPINGS"
    NO_MAPPINGS = "NO_MAPPINGS"
    NO_XML_ENDPOINT = "NO_XML_ENDPOINT"
    XML_PARSE_ERROR = "XML_PARSE_ERROR"
    # Connection tests / sync
    CONNECTION_TEST_STATUS_MISMATCH = "CONNECTION_TEST_STATUS_MISMATCH"
    CONNECTION_TEST_PATH_FAILED = "CONNECTION_TEST_PATH_FAILED"
    CONNECTION_TEST_VALUE_MISMATCH = "CONNECTION_TEST_VALUE_MISMATCH"
    CONNECTION_TEST_ELEMENT_MISSING = "CONNECTION_TEST_ELEMENT_MISSING"
    SYNC_FAILED = "SYNC_FAILED"


# Programmer errors: raised through adapter boundaries instead of folded into results.
CONFIGURATION_ERROR_CODES: frozenset[str] = frozenset({
    ErrorCode.INVALID_CONFIG.value,
    ErrorCode.MISSING_MAPPINGS.value,
    ErrorCode.NO_XML_ENDPOINT.value,
})


class POSAdapterError(Exception):
    """Uniform error raised anywhere inside the adapter framework."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code.value if isinstance(error_code, ErrorCode) else error_code
        self.details = details or {}
        self.retryable = retryable
        self.headers = headers or {}

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429 or self.error_code == ErrorCode.RATE_LIMIT_EXCEEDED.value

    @property
    def retry_after_seconds(self) -> float | None:
        """Server- or limiter-advertised delay before the next attempt."""
        value = self.details.get("retry_after_seconds")
        if value is None:
            return None
        try:
            return max(0.0, float(value))
        except (TypeError, ValueError):
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "details": self.details,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return (
            f"POSAdapterError({self.error_code}, status={self.status_code}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


def normalize_error(exc: BaseException) -> POSAdapterError:
    """Map an arbitrary exception into the structured taxonomy."""
    if isinstance(exc, POSAdapterError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return POSAdapterError("Request timeout", 408, ErrorCode.TIMEOUT, retryable=True)

    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if any(hint in text for hint in _DNS_FAILURE_HINTS):
            return POSAdapterError(
                f"Host not found: {exc}", 503, ErrorCode.HOST_NOT_FOUND, retryable=False
            )
        return POSAdapterError(
            f"Connection refused: {exc}", 503, ErrorCode.CONNECTION_REFUSED, retryable=True
        )

    if isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        return POSAdapterError(
            f"Connection reset: {exc}", 503, ErrorCode.CONNECTION_RESET, retryable=True
        )

    if isinstance(exc, ConnectionResetError):
        return POSAdapterError(
            f"Connection reset: {exc}", 503, ErrorCode.CONNECTION_RESET, retryable=True
        )

    return POSAdapterError(str(exc) or type(exc).__name__, 500, ErrorCode.UNKNOWN_ERROR)


# ---------------------------------------------------------------------------
# Vendor error bodies
# ---------------------------------------------------------------------------

def extract_error_message(data: Any, fallback: str) -> str:
    """Pull a human-readable message out of a vendor error body."""
    if isinstance(data, dict):
        for key in ("message", "error", "error_description"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, str):
                return first
            if isinstance(first, dict) and isinstance(first.get("message"), str):
                return first["message"]
    return fallback


def extract_error_code(data: Any, status_code: int) -> str:
    """Pull a machine-readable code out of a vendor error body."""
    if isinstance(data, dict):
        for key in ("code", "error_code"):
            value = data.get(key)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
                return str(value)
        error = data.get("error")
        if isinstance(error, str) and error and " " not in error:
            return error
    return f"HTTP_{status_code}"
