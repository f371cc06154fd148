"""Path safety and glob matching for directory-based file exchange."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from possync.errors import ErrorCode, POSAdapterError


def resolve_under(base: Path | str, *parts: str | Path) -> Path:
    """Join ``parts`` onto ``base`` and refuse anything that escapes it.

    Raises a non-retryable PATH_TRAVERSAL error before any filesystem
    mutation can happen.
    """
    root = Path(base).resolve()
    candidate = root.joinpath(*parts).resolve()
    if candidate != root and not candidate.is_relative_to(root):
        raise POSAdapterError(
            f"Path traversal detected: {candidate} is outside {root}",
            400,
            ErrorCode.PATH_TRAVERSAL,
            details={"path": str(candidate), "base": str(root)},
            retryable=False,
        )
    return candidate


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Anchored, case-insensitive regex for a ``*`` / ``?`` glob."""
    escaped = re.escape(pattern)
    translated = escaped.replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{translated}$", re.IGNORECASE)


def file_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with milliseconds, ':' and '.' replaced by '-'.

    2026-10-17T09:30:00.250Z becomes 2026-10-17T09-30-00-250Z. Naive
    datetimes are taken as UTC.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    stamp = f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}Z"
    return stamp.replace(":", "-").replace(".", "-")
