"""Generic XML adapter: onboard an XML-over-HTTP POS through configuration.

One endpoint returns an XML document; each entity type names the element
to select and the paths (``Name``, ``@Code``, ``Details/Description``) to
read from it. Namespaces are stripped at parse time.
"""

from __future__ import annotations

import logging
import time
import xml.etree.ElementTree as ET
from typing import Any, Optional

from pydantic import BaseModel, Field

from adapters.canonical import (
    POSCashier,
    POSDepartment,
    POSTaxRate,
    POSTenderType,
    build_cashier,
    build_department,
    build_tax_rate,
    build_tender_type,
)
from possync.errors import ErrorCode, POSAdapterError, normalize_error
from possync.integrations import (
    AdapterCapabilities,
    ConnectionConfig,
    ConnectionTestResult,
    EntityType,
    RestService,
    SyncResult,
    collect,
)
from possync.mapping import RecordBuilder, XMLEntityMapping, XMLMappingEngine
from possync.mapping.xml_path import element_text, find_elements, parse_xml

logger = logging.getLogger(__name__)


class XMLConnectionTest(BaseModel):
    success_element: str = Field(..., min_length=1)
    expected_value: Optional[str] = None


class GenericXMLMappings(BaseModel):
    departments: Optional[XMLEntityMapping] = None
    tender_types: Optional[XMLEntityMapping] = None
    cashiers: Optional[XMLEntityMapping] = None
    tax_rates: Optional[XMLEntityMapping] = None
    connection_test: Optional[XMLConnectionTest] = None

    def has_any(self) -> bool:
        return any((self.departments, self.tender_types, self.cashiers, self.tax_rates))


class GenericXMLConnectionConfig(ConnectionConfig):
    pos_type: str = "generic_xml"
    mappings: Optional[GenericXMLMappings] = None
    xml_endpoint: Optional[str] = None
    content_type: str = "application/xml"


class GenericXMLAdapter:
    pos_type = "generic_xml"
    display_name = "Generic XML"
    config_model = GenericXMLConnectionConfig
    version = "Generic XML Adapter v1"

    def __init__(self, service: RestService | None = None):
        self.service = service or RestService()
        self.engine = XMLMappingEngine()

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            sync_departments=True,
            sync_tender_types=True,
            sync_cashiers=True,
            sync_tax_rates=True,
        )

    async def test_connection(self, config: ConnectionConfig) -> ConnectionTestResult:
        xml_config = self._validate_config(config)
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        if not xml_config.mappings.has_any():
            return ConnectionTestResult(
                success=False,
                message="No XML mappings configured",
                latency_ms=elapsed(),
                error_code=ErrorCode.NO_MAPPINGS.value,
            )
        self._require_endpoint(xml_config)

        try:
            root = await self.fetch_document(xml_config)
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Generic XML connection test failed: %s (%s)", error.message, error.error_code)
            return ConnectionTestResult.from_error(error, latency_ms=elapsed())

        probe = xml_config.mappings.connection_test
        if probe is not None:
            matches = find_elements(root, probe.success_element)
            if not matches:
                return ConnectionTestResult(
                    success=False,
                    message=f"Connection test element {probe.success_element!r} not found",
                    latency_ms=elapsed(),
                    error_code=ErrorCode.CONNECTION_TEST_ELEMENT_MISSING.value,
                )
            actual = element_text(matches[0])
            if probe.expected_value is not None and actual != probe.expected_value:
                return ConnectionTestResult(
                    success=False,
                    message=f"Connection test expected {probe.expected_value!r} but got {actual!r}",
                    latency_ms=elapsed(),
                    error_code=ErrorCode.CONNECTION_TEST_VALUE_MISMATCH.value,
                )

        return ConnectionTestResult(
            success=True,
            message="Successfully connected to Generic XML source",
            latency_ms=elapsed(),
            version=self.version,
        )

    async def fetch_document(self, config: GenericXMLConnectionConfig) -> ET.Element:
        """GET the configured endpoint and parse it, namespaces stripped."""
        endpoint = self._require_endpoint(config)
        resp = await self.service.get(config, endpoint, headers={"Accept": config.content_type})
        return parse_xml(resp.text)

    # --- Sync ---

    async def sync_departments(self, config: ConnectionConfig) -> SyncResult[POSDepartment]:
        xml_config = self._validate_config(config)
        return await self._sync(xml_config, EntityType.DEPARTMENTS, xml_config.mappings.departments, build_department)

    async def sync_tender_types(self, config: ConnectionConfig) -> SyncResult[POSTenderType]:
        xml_config = self._validate_config(config)
        return await self._sync(xml_config, EntityType.TENDER_TYPES, xml_config.mappings.tender_types, build_tender_type)

    async def sync_cashiers(self, config: ConnectionConfig) -> SyncResult[POSCashier]:
        xml_config = self._validate_config(config)
        return await self._sync(xml_config, EntityType.CASHIERS, xml_config.mappings.cashiers, build_cashier)

    async def sync_tax_rates(self, config: ConnectionConfig) -> SyncResult[POSTaxRate]:
        xml_config = self._validate_config(config)
        return await self._sync(xml_config, EntityType.TAX_RATES, xml_config.mappings.tax_rates, build_tax_rate)

    async def _sync(
        self,
        config: GenericXMLConnectionConfig,
        entity_type: EntityType,
        mapping: XMLEntityMapping | None,
        build: RecordBuilder[Any],
    ) -> SyncResult[Any]:
        if mapping is None:
            logger.warning("No %s mapping configured", entity_type.value)
            return SyncResult(entity_type=entity_type.value)
        self._require_endpoint(config)

        async def run() -> SyncResult[Any]:
            root = await self.fetch_document(config)
            mapped = self.engine.extract(root, mapping, build, entity_type.value)
            logger.info("Synced %d %s from Generic XML source", len(mapped.records), entity_type.value)
            return SyncResult(entity_type=entity_type.value, records=mapped.records, skipped=mapped.skipped_count)

        return await collect(entity_type, run)

    # --- Helpers ---

    @staticmethod
    def _validate_config(config: ConnectionConfig) -> GenericXMLConnectionConfig:
        if not isinstance(config, GenericXMLConnectionConfig) or config.mappings is None:
            raise POSAdapterError("Generic XML mappings are required", 400, ErrorCode.MISSING_MAPPINGS)
        return config

    @staticmethod
    def _require_endpoint(config: GenericXMLConnectionConfig) -> str:
        if not config.xml_endpoint:
            raise POSAdapterError("No XML endpoint configured", 400, ErrorCode.NO_XML_ENDPOINT)
        return config.xml_endpoint
