"""
POSSync Generic Mapping Engine.

Extracts typed records from parsed vendor responses using declarative
EntityMappings. Two sibling engines share the per-record pipeline:
- JSONMappingEngine: JSON-path-lite over decoded JSON
- XMLMappingEngine: simplified XML paths over ElementTree elements

Per record: evaluate paths -> apply defaults -> transform -> check
required fields -> build. A bad record is skipped and logged; it never
fails the batch.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Sequence, TypeVar
import logging
import xml.etree.ElementTree as ET

from possync.mapping import json_path, xml_path
from possync.mapping.models import FieldSpec, JSONEntityMapping, XMLEntityMapping
from possync.mapping.transforms import apply_transform

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (extracted fields, zero-based source index) -> domain record
RecordBuilder = Callable[[dict[str, Any], int], T]


@dataclass
class SkippedRecord:
    index: int
    reason: str
    missing_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "reason": self.reason, "missing_fields": self.missing_fields}


@dataclass
class MappingResult(Generic[T]):
    """Records built from one response, plus what was skipped and why."""
    records: list[T] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)
    source_count: int = 0

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


class MappingEngine(ABC):
    """Shared record pipeline; subclasses supply path resolution."""

    flavor: str = ""

    @abstractmethod
    def resolve(self, record: Any, path: str) -> Any:
        """Evaluate one path expression against one record."""

    def extract_fields(
        self, record: Any, fields: dict[str, FieldSpec]
    ) -> tuple[dict[str, Any], list[str]]:
        """Return (values, names of missing required fields)."""
        values: dict[str, Any] = {}
        missing: list[str] = []
        for name, spec in fields.items():
            value = self.resolve(record, spec.path)
            if _is_missing(value):
                value = spec.default
            if spec.transform and value is not None:
                try:
                    value = apply_transform(spec.transform, value)
                except (ValueError, TypeError, OverflowError):
                    value = None
                if value is None:
                    value = spec.default
            if spec.required and _is_missing(value):
                missing.append(name)
            values[name] = value
        return values, missing

    def map_records(
        self,
        records: Sequence[Any],
        fields: dict[str, FieldSpec],
        build: RecordBuilder[T] | None = None,
        entity_type: str = "record",
    ) -> MappingResult[T]:
        result: MappingResult[T] = MappingResult(source_count=len(records))
        for index, record in enumerate(records):
            values, missing = self.extract_fields(record, fields)
            if missing:
                logger.warning(
                    "Skipping %s at index %d: missing required field(s) %s",
                    entity_type, index, ", ".join(missing),
                )
                result.skipped.append(
                    SkippedRecord(index, "missing required fields", missing)
                )
                continue
            try:
                built = build(values, index) if build else values
            except Exception as exc:
                logger.warning("Skipping %s at index %d: %s", entity_type, index, exc)
                result.skipped.append(SkippedRecord(index, str(exc)))
                continue
            result.records.append(built)
        return result


class JSONMappingEngine(MappingEngine):
    flavor = "json"

    def resolve(self, record: Any, path: str) -> Any:
        return json_path.evaluate(record, path)

    def locate(self, data: Any, array_path: str | None) -> list[Any]:
        """Find the record array; a lone object counts as one record."""
        items = json_path.evaluate(data, array_path)
        if items is None:
            return []
        if isinstance(items, list):
            return items
        if isinstance(items, dict):
            return [items]
        return []

    def extract(
        self,
        data: Any,
        mapping: JSONEntityMapping,
        build: RecordBuilder[T] | None = None,
        entity_type: str = "record",
    ) -> MappingResult[T]:
        items = self.locate(data, mapping.array_path)
        return self.map_records(items, mapping.fields, build, entity_type)


class XMLMappingEngine(MappingEngine):
    flavor = "xml"

    def resolve(self, record: ET.Element, path: str) -> Any:
        return xml_path.evaluate(record, path)

    def locate(self, root: ET.Element, element_name: str) -> list[ET.Element]:
        return xml_path.find_elements(root, element_name)

    def extract(
        self,
        document: ET.Element | str | bytes,
        mapping: XMLEntityMapping,
        build: RecordBuilder[T] | None = None,
        entity_type: str = "record",
    ) -> MappingResult[T]:
        root = xml_path.parse_xml(document) if isinstance(document, (str, bytes)) else document
        elements = self.locate(root, mapping.element_name)
        return self.map_records(elements, mapping.fields, build, entity_type)
