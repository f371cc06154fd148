"""
POSSync File Exchange: directory-based NAXML transport.

- FileExchangeEngine: discover, read, archive, quarantine, export
- FileLifecycle / FileState: per-file DISCOVERED -> READ -> IMPORTED | REJECTED
- resolve_under / glob_to_regex: path safety and pattern matching
- NAXML conventions: document types, file patterns, maintenance builder
"""
from possync.file_exchange.engine import (
    DirectoryStatus,
    FileExchangeEngine,
    FileExchangeLayout,
    FileExchangeResult,
    FileExportResult,
    ImportHandler,
    ImportOutcome,
    content_hash,
)
from possync.file_exchange.naxml import (
    EXPORT_PREFIXES,
    FILE_PATTERNS,
    NAXMLDocumentType,
    build_maintenance_document,
    detect_document_type,
    parse_document,
    prefix_for,
)
from possync.file_exchange.paths import (
    file_timestamp,
    glob_to_regex,
    resolve_under,
)
from possync.file_exchange.states import FileLifecycle, FileState

__all__ = [
    # Engine
    "DirectoryStatus",
    "FileExchangeEngine",
    "FileExchangeLayout",
    "FileExchangeResult",
    "FileExportResult",
    "ImportHandler",
    "ImportOutcome",
    "content_hash",
    # NAXML
    "EXPORT_PREFIXES",
    "FILE_PATTERNS",
    "NAXMLDocumentType",
    "build_maintenance_document",
    "detect_document_type",
    "parse_document",
    "prefix_for",
    # Paths
    "file_timestamp",
    "glob_to_regex",
    "resolve_under",
    # Lifecycle
    "FileLifecycle",
    "FileState",
]
