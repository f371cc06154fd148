"""
POSSync Logging Setup.

Stdlib logging wired for a multi-store integration service:
- Credential redaction on every record (headers, extras, message text)
- Store id stamped on every record from a ContextVar
- One call to configure the process: setup_logging()
"""
from __future__ import annotations
from contextvars import ContextVar, Token
from typing import Any
import logging
import re
import sys

# Any header or field whose name contains one of these is masked.
SENSITIVE_MARKERS: tuple[str, ...] = ("authorization", "secret", "key", "token")
REDACTED = "***REDACTED***"

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(store_id)s] %(name)s: %(message)s"

_SENSITIVE_PAIR = re.compile(
    r"(?i)(?P<name>[\w.-]*(?:authorization|secret|key|token)[\w.-]*)"
    r"(?P<sep>['\"]?\s*[=:]\s*['\"]?)"
    r"(?P<value>(?:bearer|basic)\s+[^\s,;&'\"}]+|[^\s,;&'\"}]+)"
)

# Attributes present on every LogRecord; anything else arrived via ``extra``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "store_id"}


# ---------------------------------------------------------------------------
# Redaction helpers
# ---------------------------------------------------------------------------

def is_sensitive(name: str) -> bool:
    """True when a header or field name must never be logged in cleartext."""
    lowered = name.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def redact_mapping(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive keys masked, recursively."""
    if isinstance(data, dict):
        return {
            k: (REDACTED if isinstance(k, str) and is_sensitive(k) else redact_mapping(v))
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(redact_mapping(v) for v in data)
    return data


def redact_headers(headers: dict[str, str] | None) -> dict[str, str]:
    """Mask auth headers before they reach a log call."""
    return redact_mapping(dict(headers or {}))


def redact_text(text: str) -> str:
    """Mask ``name=value`` / ``name: value`` pairs whose name is sensitive."""
    return _SENSITIVE_PAIR.sub(
        lambda m: f"{m.group('name')}{m.group('sep')}{REDACTED}", text
    )


# ---------------------------------------------------------------------------
# Store context
# ---------------------------------------------------------------------------

_current_store: ContextVar[str] = ContextVar("current_store", default="-")


def get_current_store() -> str:
    """Return the store id bound to the current task."""
    return _current_store.get()


def set_current_store(store_id: str) -> Token:
    return _current_store.set(store_id)


def reset_current_store(token: Token) -> None:
    _current_store.reset(token)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class RedactingFilter(logging.Filter):
    """Mask credentials in record args, extras and the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = redact_mapping(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact_mapping(a) for a in record.args)

        for attr, value in list(record.__dict__.items()):
            if attr in _RECORD_ATTRS:
                continue
            if is_sensitive(attr):
                setattr(record, attr, REDACTED)
            elif isinstance(value, (dict, list, tuple)):
                setattr(record, attr, redact_mapping(value))

        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class StoreContextFilter(logging.Filter):
    """Stamp ``record.store_id`` from the current store context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "store_id"):
            record.store_id = get_current_store()
        return True


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def setup_logging(
    level: int | str = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    logger_name: str | None = None,
) -> logging.Handler:
    """Install a redacting stream handler on ``logger_name`` (root by default).

    Idempotent: a handler installed by a previous call is replaced.
    """
    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        if getattr(existing, "_possync_handler", False):
            target.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(StoreContextFilter())
    handler.addFilter(RedactingFilter())
    handler._possync_handler = True  # type: ignore[attr-defined]

    target.addHandler(handler)
    target.setLevel(level)
    return handler
