"""JSON-path-lite evaluator.

Operates on plain decoded JSON values (str, int, float, bool, None, list,
dict). Traversal never raises on a miss: any step that cannot be taken
yields ``None``.

Supported syntax::

    $                     the root
    $.data                object property
    $.data[0].name        array index (negative indexes count from the end)
    $['odd key'].value    quoted property
    $.items[*].id         wildcard, projects the rest of the path over each element
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Union


class _Wildcard:
    def __repr__(self) -> str:
        return "*"


WILDCARD = _Wildcard()

Token = Union[str, int, _Wildcard]

_TOKEN_RE = re.compile(
    r"""
      \[\s*(?:'(?P<sq>[^']*)'|"(?P<dq>[^"]*)"|(?P<idx>-?\d+)|(?P<star>\*))\s*\]
    | (?P<key>[^.\[\]]+)
    | (?P<dot>\.)
    """,
    re.VERBOSE,
)


@lru_cache(maxsize=512)
def parse_path(path: str) -> tuple[Token, ...]:
    """Split a path expression into property, index and wildcard tokens.

    Raises ValueError for malformed expressions (e.g. an unclosed bracket).
    """
    expr = path.strip()
    if expr.startswith("$"):
        expr = expr[1:]
    expr = expr.lstrip(".")

    tokens: list[Token] = []
    pos = 0
    while pos < len(expr):
        m = _TOKEN_RE.match(expr, pos)
        if m is None:
            raise ValueError(f"Invalid path expression: {path!r}")
        pos = m.end()
        if m.group("dot"):
            continue
        if m.group("sq") is not None:
            tokens.append(m.group("sq"))
        elif m.group("dq") is not None:
            tokens.append(m.group("dq"))
        elif m.group("idx") is not None:
            tokens.append(int(m.group("idx")))
        elif m.group("star"):
            tokens.append(WILDCARD)
        else:
            key = m.group("key").strip()
            tokens.append(WILDCARD if key == "*" else key)
    return tuple(tokens)


def _step(current: Any, token: str | int) -> Any:
    if isinstance(token, int):
        if isinstance(current, list) and -len(current) <= token < len(current):
            return current[token]
        return None
    if isinstance(current, dict):
        return current.get(token)
    if isinstance(current, list) and token.isdigit():
        index = int(token)
        return current[index] if index < len(current) else None
    return None


def _walk(current: Any, tokens: tuple[Token, ...]) -> Any:
    for i, token in enumerate(tokens):
        if current is None:
            return None
        if token is WILDCARD:
            if isinstance(current, list):
                items = current
            elif isinstance(current, dict):
                items = list(current.values())
            else:
                return None
            rest = tokens[i + 1:]
            if not rest:
                return list(items)
            projected = []
            nested_wildcard = WILDCARD in rest
            for item in items:
                value = _walk(item, rest)
                if value is None:
                    continue
                if nested_wildcard and isinstance(value, list):
                    projected.extend(value)
                else:
                    projected.append(value)
            return projected
        current = _step(current, token)
    return current


def evaluate(data: Any, path: str | None) -> Any:
    """Resolve ``path`` against ``data``; ``None`` when nothing matches."""
    if path is None or path.strip() in ("", "$"):
        return data
    return _walk(data, parse_path(path))
