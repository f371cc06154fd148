"""NAXML file-exchange adapter.

For back-office systems that talk through a shared directory instead of
HTTP. The POS drops NAXML documents into ``Export/``; we import them,
archive what succeeded and quarantine what failed. Maintenance documents
we generate go into ``Import/`` for the POS to pick up.

Blocking filesystem work runs in a worker thread so the event loop stays
free while a large batch is processed.
"""

from __future__ import annotations

import asyncio
import logging
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from pydantic import Field

from adapters.canonical import (
    POSAcknowledgment,
    POSAcknowledgmentError,
    POSCashier,
    POSDepartment,
    POSTaxRate,
    POSTenderType,
    POSTransaction,
    build_cashier,
    build_department,
    build_line_item,
    build_payment,
    build_tax_rate,
    build_tender_type,
    build_transaction,
)
from possync.errors import ErrorCode, POSAdapterError, normalize_error
from possync.file_exchange import (
    FILE_PATTERNS,
    FileExchangeEngine,
    FileExchangeLayout,
    FileExchangeResult,
    FileExportResult,
    ImportOutcome,
    NAXMLDocumentType,
    build_maintenance_document,
    parse_document,
    prefix_for,
)
from possync.integrations import (
    AdapterCapabilities,
    ConnectionConfig,
    ConnectionTestResult,
    EntityType,
    SyncIssue,
    SyncResult,
    collect,
)
from possync.mapping import RecordBuilder, XMLEntityMapping, XMLMappingEngine
from possync.mapping.transforms import to_datetime, to_number
from possync.mapping.xml_path import evaluate, find_elements

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class FileExchangeConnectionConfig(ConnectionConfig):
    pos_type: str = "naxml_file"
    base_path: Optional[str] = None
    store_location_id: str = ""
    naxml_version: str = "3.4"
    archive_processed_files: bool = True
    archive_path: Optional[str] = None
    error_path: Optional[str] = None
    extra_patterns: dict[str, list[str]] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Default NAXML mappings
# ---------------------------------------------------------------------------

DEPARTMENT_MAPPING = XMLEntityMapping(
    element_name="Department",
    fields={
        "pos_code": {"path": "@Code", "required": True},
        "display_name": {"path": "Description", "required": True},
        "is_taxable": {"path": "IsTaxable", "transform": "boolean", "default": True},
        "tax_rate_code": "TaxRateCode",
        "minimum_age": {"path": "MinimumAge", "transform": "number"},
        "is_active": {"path": "IsActive", "transform": "boolean", "default": True},
        "sort_order": {"path": "SortOrder", "transform": "number"},
    },
)

TENDER_MAPPING = XMLEntityMapping(
    element_name="Tender",
    fields={
        "pos_code": {"path": "@Code", "required": True},
        "display_name": {"path": "Description", "required": True},
        "is_cash_equivalent": {"path": "IsCashEquivalent", "transform": "boolean"},
        "is_electronic": {"path": "IsElectronic", "transform": "boolean"},
        "affects_cash_drawer": {"path": "AffectsCashDrawer", "transform": "boolean"},
        "requires_reference": {"path": "RequiresReference", "transform": "boolean"},
        "is_active": {"path": "IsActive", "transform": "boolean", "default": True},
    },
)

TAX_RATE_MAPPING = XMLEntityMapping(
    element_name="TaxRate",
    fields={
        "pos_code": {"path": "@Code", "required": True},
        "display_name": {"path": "Description", "required": True},
        "rate": {"path": "Rate", "transform": "number", "default": 0},
        "is_active": {"path": "IsActive", "transform": "boolean", "default": True},
        "jurisdiction_code": "JurisdictionCode",
    },
)

EMPLOYEE_MAPPING = XMLEntityMapping(
    element_name="Employee",
    fields={
        "pos_code": {"path": "EmployeeID", "required": True},
        "employee_id": "EmployeeID",
        "first_name": "FirstName",
        "last_name": "LastName",
        "is_active": {"path": "IsActive", "transform": "boolean", "default": True},
    },
)

TRANSACTION_MAPPING = XMLEntityMapping(
    element_name="Transaction",
    fields={
        "transaction_id": {"path": "TransactionHeader/TransactionID", "required": True},
        "store_location_id": "TransactionHeader/StoreLocationID",
        "terminal_id": "TransactionHeader/TerminalID",
        "cashier_code": "TransactionHeader/CashierID",
        "business_date": "TransactionHeader/BusinessDate",
        "timestamp": {"path": "TransactionHeader/TransactionDate", "transform": "date"},
        "transaction_type": {"path": "TransactionHeader/TransactionType", "default": "Sale"},
        "subtotal": {"path": "TransactionTotal/Subtotal", "transform": "number"},
        "tax_total": {"path": "TransactionTotal/TaxTotal", "transform": "number"},
        "grand_total": {"path": "TransactionTotal/GrandTotal", "transform": "number"},
    },
)

LINE_ITEM_MAPPING = XMLEntityMapping(
    element_name="LineItem",
    fields={
        "line_number": {"path": "LineNumber", "transform": "number"},
        "item_code": "ItemCode",
        "description": "Description",
        "department_code": "DepartmentCode",
        "quantity": {"path": "Quantity", "transform": "number", "default": 1},
        "unit_price": {"path": "UnitPrice", "transform": "number"},
        "extended_price": {"path": "ExtendedPrice", "transform": "number"},
        "tax_amount": {"path": "TaxAmount", "transform": "number"},
        "is_void": {"path": "IsVoid", "transform": "boolean", "default": False},
    },
)

PAYMENT_MAPPING = XMLEntityMapping(
    element_name="Tender",
    fields={
        "tender_code": {"path": "TenderCode", "required": True},
        "tender_description": "TenderDescription",
        "amount": {"path": "Amount", "transform": "number"},
        "reference_number": "ReferenceNumber",
    },
)

# Import patterns and expected document type per entity.
_IMPORTS: dict[str, tuple[NAXMLDocumentType, XMLEntityMapping, RecordBuilder[Any]]] = {
    EntityType.DEPARTMENTS.value: (NAXMLDocumentType.DEPARTMENT_MAINTENANCE, DEPARTMENT_MAPPING, build_department),
    EntityType.TENDER_TYPES.value: (NAXMLDocumentType.TENDER_MAINTENANCE, TENDER_MAPPING, build_tender_type),
    EntityType.CASHIERS.value: (NAXMLDocumentType.EMPLOYEE_MAINTENANCE, EMPLOYEE_MAPPING, build_cashier),
    EntityType.TAX_RATES.value: (NAXMLDocumentType.TAX_RATE_MAINTENANCE, TAX_RATE_MAPPING, build_tax_rate),
}


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class NAXMLFileAdapter:
    pos_type = "naxml_file"
    display_name = "NAXML File Exchange"
    config_model = FileExchangeConnectionConfig

    def __init__(self, clock: Callable[[], Any] | None = None):
        self.mapper = XMLMappingEngine()
        self._clock = clock

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            sync_departments=True,
            sync_tender_types=True,
            sync_cashiers=True,
            sync_tax_rates=True,
        )

    def engine_for(self, config: FileExchangeConnectionConfig) -> FileExchangeEngine:
        layout = FileExchangeLayout.from_base(
            self._require_base_path(config), config.archive_path, config.error_path
        )
        kwargs: dict[str, Any] = {"archive_processed_files": config.archive_processed_files}
        if self._clock is not None:
            kwargs["clock"] = self._clock
        return FileExchangeEngine(layout, **kwargs)

    # --- Connection test ---

    async def test_connection(self, config: ConnectionConfig) -> ConnectionTestResult:
        start = time.perf_counter()
        file_config = self._validate_config(config)
        if not file_config.base_path:
            return ConnectionTestResult(
                success=False,
                message="File exchange base path is not configured",
                error_code=ErrorCode.INVALID_CONFIG.value,
            )

        engine = self.engine_for(file_config)
        try:
            status = await asyncio.to_thread(engine.check_directories)
            if not status.ok:
                return ConnectionTestResult(
                    success=False,
                    message="; ".join(status.problems),
                    latency_ms=(time.perf_counter() - start) * 1000,
                    error_code=ErrorCode.DIRECTORY_NOT_FOUND.value,
                )
            pending = await asyncio.to_thread(self._pending_counts, engine, file_config)
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("File exchange connection test failed: %s", error.message)
            return ConnectionTestResult.from_error(error, (time.perf_counter() - start) * 1000)

        return ConnectionTestResult(
            success=True,
            message=f"Connected to NAXML file exchange at {file_config.base_path}",
            latency_ms=(time.perf_counter() - start) * 1000,
            version=file_config.naxml_version,
            details={"pending_files": pending, "created_directories": status.created},
        )

    def _pending_counts(self, engine: FileExchangeEngine, config: FileExchangeConnectionConfig) -> dict[str, int]:
        return {name: len(engine.discover(self._patterns(config, name))) for name in FILE_PATTERNS}

    # --- Maintenance imports ---

    async def sync_departments(self, config: ConnectionConfig) -> SyncResult[POSDepartment]:
        return await self._sync_maintenance(config, EntityType.DEPARTMENTS)

    async def sync_tender_types(self, config: ConnectionConfig) -> SyncResult[POSTenderType]:
        return await self._sync_maintenance(config, EntityType.TENDER_TYPES)

    async def sync_cashiers(self, config: ConnectionConfig) -> SyncResult[POSCashier]:
        return await self._sync_maintenance(config, EntityType.CASHIERS)

    async def sync_tax_rates(self, config: ConnectionConfig) -> SyncResult[POSTaxRate]:
        return await self._sync_maintenance(config, EntityType.TAX_RATES)

    async def _sync_maintenance(self, config: ConnectionConfig, entity_type: EntityType) -> SyncResult[Any]:
        file_config = self._validate_config(config)
        engine = self.engine_for(file_config)
        expected, mapping, build = _IMPORTS[entity_type.value]

        def handle(content: bytes, path: Path) -> ImportOutcome:
            doc_type, root = self._parse_expected(content, expected)
            mapped = self.mapper.extract(root, mapping, build, entity_type.value)
            return ImportOutcome(
                document_type=doc_type.value,
                record_count=mapped.source_count,
                success_count=len(mapped.records),
                failed_count=mapped.skipped_count,
                records=mapped.records,
            )

        return await self._import(file_config, engine, entity_type.value, handle)

    # --- Transactions & acknowledgments ---

    async def import_transactions(self, config: ConnectionConfig) -> SyncResult[POSTransaction]:
        """Import TLog/Trans files into canonical transactions."""
        file_config = self._validate_config(config)
        engine = self.engine_for(file_config)

        def handle(content: bytes, path: Path) -> ImportOutcome:
            doc_type, root = self._parse_expected(content, NAXMLDocumentType.TRANSACTION)
            return self._transactions_from(root, doc_type)

        return await self._import(file_config, engine, EntityType.TRANSACTIONS.value, handle)

    def _transactions_from(self, root: ET.Element, doc_type: NAXMLDocumentType) -> ImportOutcome:
        # A TLog may batch several <Transaction> elements; otherwise the root is the transaction.
        elements = find_elements(root, TRANSACTION_MAPPING.element_name) or [root]
        outcome = ImportOutcome(document_type=doc_type.value, record_count=len(elements))
        for index, element in enumerate(elements):
            values, missing = self.mapper.extract_fields(element, TRANSACTION_MAPPING.fields)
            if missing:
                logger.warning("Skipping transaction at index %d: missing %s", index, ", ".join(missing))
                outcome.failed_count += 1
                outcome.errors.append(f"Transaction {index}: missing {', '.join(missing)}")
                continue
            lines = self.mapper.extract(element, LINE_ITEM_MAPPING, build_line_item, "line item").records
            payments = self.mapper.extract(element, PAYMENT_MAPPING, build_payment, "payment").records
            outcome.records.append(build_transaction(values, lines, payments))
            outcome.success_count += 1
        return outcome

    async def check_acknowledgments(self, config: ConnectionConfig) -> list[POSAcknowledgment]:
        """Read acknowledgments the POS wrote for documents we exported."""
        file_config = self._validate_config(config)
        engine = self.engine_for(file_config)

        def handle(content: bytes, path: Path) -> ImportOutcome:
            doc_type, root = self._parse_expected(content, NAXMLDocumentType.ACKNOWLEDGMENT)
            return ImportOutcome(document_type=doc_type.value, record_count=1, success_count=1,
                                 records=[self._acknowledgment_from(root)])

        result = await self._import(file_config, engine, "acknowledgments", handle)
        return result.records

    @staticmethod
    def _acknowledgment_from(root: ET.Element) -> POSAcknowledgment:
        errors = [
            POSAcknowledgmentError(
                code=evaluate(el, "ErrorCode") or "UNKNOWN",
                message=evaluate(el, "ErrorMessage") or "",
            )
            for el in find_elements(root, "Error")
        ]
        stamp = evaluate(root, "Timestamp")
        return POSAcknowledgment(
            original_document_id=evaluate(root, "OriginalDocumentID"),
            original_document_type=evaluate(root, "OriginalDocumentType"),
            status=evaluate(root, "Status") or "Unknown",
            timestamp=to_datetime(stamp) if stamp else None,
            records_processed=int(to_number(evaluate(root, "RecordsProcessed") or 0)),
            records_failed=int(to_number(evaluate(root, "RecordsFailed") or 0)),
            errors=errors,
        )

    # --- Exports ---

    async def export_departments(
        self, config: ConnectionConfig, departments: Iterable[POSDepartment]
    ) -> FileExportResult:
        records = [
            {
                "@Code": d.pos_code,
                "Description": d.display_name,
                "IsTaxable": d.is_taxable,
                "TaxRateCode": d.tax_rate_code,
                "MinimumAge": d.minimum_age,
                "IsActive": d.is_active,
                "SortOrder": d.sort_order,
            }
            for d in departments
        ]
        return await self._export(config, NAXMLDocumentType.DEPARTMENT_MAINTENANCE, records)

    async def export_tender_types(
        self, config: ConnectionConfig, tenders: Iterable[POSTenderType]
    ) -> FileExportResult:
        records = [
            {
                "@Code": t.pos_code,
                "Description": t.display_name,
                "IsCashEquivalent": t.is_cash_equivalent,
                "IsElectronic": t.is_electronic,
                "AffectsCashDrawer": t.affects_cash_drawer,
                "RequiresReference": t.requires_reference,
                "IsActive": t.is_active,
            }
            for t in tenders
        ]
        return await self._export(config, NAXMLDocumentType.TENDER_MAINTENANCE, records)

    async def export_tax_rates(
        self, config: ConnectionConfig, tax_rates: Iterable[POSTaxRate]
    ) -> FileExportResult:
        records = [
            {
                "@Code": r.pos_code,
                "Description": r.display_name,
                "Rate": r.rate,
                "IsActive": r.is_active,
                "JurisdictionCode": r.jurisdiction_code,
            }
            for r in tax_rates
        ]
        return await self._export(config, NAXMLDocumentType.TAX_RATE_MAINTENANCE, records)

    async def _export(
        self,
        config: ConnectionConfig,
        document_type: NAXMLDocumentType,
        records: list[dict[str, Any]],
    ) -> FileExportResult:
        file_config = self._validate_config(config)
        engine = self.engine_for(file_config)
        content = build_maintenance_document(
            document_type,
            file_config.store_location_id,
            records,
            version=file_config.naxml_version,
            maintenance_date=engine.now(),
        )
        result = await asyncio.to_thread(engine.export, prefix_for(document_type), content, len(records))
        logger.info("Exported %d %s record(s) to %s", len(records), document_type.value, result.file_name)
        return result

    # --- Helpers ---

    async def _import(
        self,
        config: FileExchangeConnectionConfig,
        engine: FileExchangeEngine,
        name: str,
        handle: Callable[[bytes, Path], ImportOutcome],
    ) -> SyncResult[Any]:
        async def run() -> SyncResult[Any]:
            files = await asyncio.to_thread(engine.process, self._patterns(config, name), handle)
            return self._summarize(name, files)

        return await collect(name, run)

    @staticmethod
    def _summarize(name: str, files: list[FileExchangeResult]) -> SyncResult[Any]:
        result: SyncResult[Any] = SyncResult(entity_type=name)
        for file in files:
            if not file.success:
                result.errors.append(SyncIssue(
                    file.error_code or ErrorCode.UNKNOWN_ERROR.value,
                    f"{file.file_name}: {'; '.join(file.errors)}",
                    {"file": file.file_name, "destination": file.destination_path},
                ))
                continue
            result.records.extend(file.records)
            result.skipped += file.failed_count
        logger.info(
            "Imported %d %s record(s) from %d file(s), %d failed file(s)",
            result.received_count, name, len(files), len(result.errors),
        )
        return result

    @staticmethod
    def _parse_expected(content: bytes, expected: NAXMLDocumentType) -> tuple[NAXMLDocumentType, ET.Element]:
        doc_type, root = parse_document(content)
        if doc_type is not expected:
            raise POSAdapterError(
                f"Expected {expected.value} but found {doc_type.value}",
                422,
                ErrorCode.UNSUPPORTED_DOCUMENT_TYPE,
                details={"expected": expected.value, "found": doc_type.value},
            )
        return doc_type, root

    @staticmethod
    def _patterns(config: FileExchangeConnectionConfig, name: str) -> list[str]:
        return [*FILE_PATTERNS[name], *config.extra_patterns.get(name, [])]

    @staticmethod
    def _validate_config(config: ConnectionConfig) -> FileExchangeConnectionConfig:
        if not isinstance(config, FileExchangeConnectionConfig):
            raise POSAdapterError(
                "File exchange configuration is required", 400, ErrorCode.INVALID_CONFIG
            )
        return config

    @staticmethod
    def _require_base_path(config: FileExchangeConnectionConfig) -> str:
        if not config.base_path:
            raise POSAdapterError(
                "File exchange base path is not configured", 400, ErrorCode.INVALID_CONFIG
            )
        return config.base_path
