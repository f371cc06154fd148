"""Simplified XML path evaluator.

Paths are evaluated relative to a record element:

- ``Name``        text of the first child ``<Name>`` (or the record's own
                  text when the record itself is ``<Name>``)
- ``@Code``       attribute of the record element
- ``A/B``         text of a nested descendant, one segment per level
- ``A/@code``     attribute of a nested element
- ``.``           the record's own text

Namespaces are stripped at parse time, so paths always use local names.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from possync.errors import ErrorCode, POSAdapterError


def _local(name: str) -> str:
    return name.rsplit("}", 1)[-1] if name.startswith("{") else name


def strip_namespaces(root: ET.Element) -> ET.Element:
    """Rewrite every tag and attribute name to its local part, in place."""
    for el in root.iter():
        if isinstance(el.tag, str):
            el.tag = _local(el.tag)
        if el.attrib:
            el.attrib = {_local(k): v for k, v in el.attrib.items()}
    return root


def parse_xml(text: str | bytes) -> ET.Element:
    """Parse a document and strip namespaces. Raises XML_PARSE_ERROR."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise POSAdapterError(
            f"Failed to parse XML: {exc}",
            422,
            ErrorCode.XML_PARSE_ERROR,
            details={"position": list(exc.position) if exc.position else None},
        ) from exc
    return strip_namespaces(root)


def find_elements(root: ET.Element, name: str) -> list[ET.Element]:
    """All elements named ``name`` at any depth, root included, document order."""
    return list(root.iter(name))


def element_text(el: ET.Element | None) -> str | None:
    if el is None:
        return None
    return (el.text or "").strip()


def evaluate(record: ET.Element, path: str | None) -> str | None:
    """Resolve ``path`` relative to ``record``; ``None`` when nothing matches."""
    if record is None or path is None:
        return None
    expr = path.strip().strip("/")
    if expr in ("", "."):
        return element_text(record)

    segments = [s for s in expr.split("/") if s]
    current = record
    for i, segment in enumerate(segments):
        if segment.startswith("@"):
            if i != len(segments) - 1:
                return None
            return current.get(segment[1:])
        child = current.find(segment)
        if child is None:
            if i == 0 and len(segments) == 1 and current.tag == segment:
                return element_text(current)
            return None
        current = child
    return element_text(current)
