"""
POSSync Mapping: configuration-driven field extraction.

Lets a new JSON or XML POS system be onboarded with configuration only:
- json_path / xml_path: path expression evaluators
- TRANSFORMS: named value transforms
- JSONMappingEngine / XMLMappingEngine: record extraction pipelines
- FieldSpec / JSONEntityMapping / XMLEntityMapping / PaginationSpec: config models
"""
from possync.mapping.engine import (
    JSONMappingEngine,
    MappingEngine,
    MappingResult,
    RecordBuilder,
    SkippedRecord,
    XMLMappingEngine,
)
from possync.mapping.models import (
    FieldSpec,
    JSONEntityMapping,
    PaginationSpec,
    XMLEntityMapping,
)
from possync.mapping.transforms import (
    TRANSFORMS,
    apply_transform,
    cents_to_dollars,
    percentage_to_decimal,
)

__all__ = [
    # Engines
    "JSONMappingEngine",
    "MappingEngine",
    "MappingResult",
    "RecordBuilder",
    "SkippedRecord",
    "XMLMappingEngine",
    # Models
    "FieldSpec",
    "JSONEntityMapping",
    "PaginationSpec",
    "XMLEntityMapping",
    # Transforms
    "TRANSFORMS",
    "apply_transform",
    "cents_to_dollars",
    "percentage_to_decimal",
]
