"""
POSSync Value Transforms.

Named, total functions applied to a field after path evaluation. A
transform returns ``None`` when it cannot interpret its input, in which
case the mapping engine falls back to the field's default.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Callable
import math
import re

_TRUE_WORDS = frozenset({"true", "yes", "1", "y", "on", "active"})
_FALSE_WORDS = frozenset({"false", "no", "0", "n", "off", "inactive"})

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y%m%d%H%M%S",
    "%Y%m%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
)


def to_number(value: Any) -> float:
    """Leading-number parse; anything unparseable is 0."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return 0.0 if isinstance(value, float) and math.isnan(value) else float(value)
    m = _LEADING_NUMBER.match(str(value))
    if not m:
        return 0.0
    return float(m.group(0))


def to_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    text = str(value).strip()
    if not text:
        return None
    if text.isdigit() and len(text) > 8:
        return to_datetime(int(text))
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def percentage_to_decimal(value: Any) -> float:
    """8.25 -> 0.0825; values <= 1 are assumed to already be decimals."""
    number = to_number(value)
    return number / 100 if number > 1 else number


def cents_to_dollars(value: Any) -> float:
    return to_number(value) / 100


TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "string": lambda v: v if isinstance(v, str) else str(v),
    "number": to_number,
    "boolean": to_boolean,
    "date": to_datetime,
    "uppercase": lambda v: str(v).upper(),
    "lowercase": lambda v: str(v).lower(),
    "trim": lambda v: str(v).strip(),
    "percentage_to_decimal": percentage_to_decimal,
    "cents_to_dollars": cents_to_dollars,
}


def apply_transform(name: str | None, value: Any) -> Any:
    """Apply a registered transform; ``None`` passes through untouched."""
    if name is None or value is None:
        return value
    try:
        fn = TRANSFORMS[name]
    except KeyError:
        raise ValueError(f"Unknown transform: {name}") from None
    return fn(value)
