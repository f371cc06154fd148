"""Generic REST adapter: onboard any JSON POS API through configuration.

Each entity type is described by a JSONEntityMapping (endpoint, array
path, field paths, pagination). The adapter owns one RestService, so its
rate-limit windows and OAuth tokens live as long as the adapter does.

Example mapping::

    {
        "departments": {
            "endpoint": "/categories",
            "array_path": "$.data",
            "fields": {
                "pos_code": {"path": "$.id", "required": True},
                "display_name": {"path": "$.name", "required": True},
                "is_taxable": {"path": "$.taxable", "transform": "boolean", "default": True},
            },
            "pagination": {"type": "offset", "page_size": 100},
        }
    }
"""

from __future__ import annotations

import logging
import time
from typing import Any, Literal, Optional

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
    Page,
    RateLimitPolicy,
    RestService,
    SyncResult,
    collect,
)
from possync.mapping import JSONEntityMapping, JSONMappingEngine, RecordBuilder, json_path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class RESTConnectionTest(BaseModel):
    endpoint: str = Field(..., min_length=1)
    method: Literal["GET", "POST"] = "GET"
    expected_status: int = 200
    success_path: Optional[str] = None
    expected_value: Optional[str] = None


class GenericRESTMappings(BaseModel):
    departments: Optional[JSONEntityMapping] = None
    tender_types: Optional[JSONEntityMapping] = None
    cashiers: Optional[JSONEntityMapping] = None
    tax_rates: Optional[JSONEntityMapping] = None
    connection_test: Optional[RESTConnectionTest] = None

    def entity_mappings(self) -> list[JSONEntityMapping]:
        return [m for m in (self.departments, self.tender_types, self.cashiers, self.tax_rates) if m]


class RateLimitOverride(BaseModel):
    max_requests: int = Field(60, gt=0)
    window_seconds: float = Field(60.0, gt=0)
    queue_requests: bool = True


class GenericRESTConnectionConfig(ConnectionConfig):
    pos_type: str = "generic_rest"
    mappings: Optional[GenericRESTMappings] = None
    default_headers: dict[str, str] = Field(default_factory=dict)
    rate_limit: Optional[RateLimitOverride] = None


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class GenericRESTAdapter:
    pos_type = "generic_rest"
    display_name = "Generic REST API"
    config_model = GenericRESTConnectionConfig
    version = "Generic REST Adapter v1"

    # Conservative default for an unknown vendor.
    default_rate_limit = RateLimitPolicy(max_requests=60, window_seconds=60.0, queue_requests=True)

    def __init__(self, service: RestService | None = None):
        self.service = service or RestService()
        self.engine = JSONMappingEngine()

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            sync_departments=True,
            sync_tender_types=True,
            sync_cashiers=True,
            sync_tax_rates=True,
        )

    # --- Connection test ---

    async def test_connection(self, config: ConnectionConfig) -> ConnectionTestResult:
        rest = self._validate_config(config)
        mappings = rest.mappings
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        if not mappings.entity_mappings():
            return ConnectionTestResult(
                success=False,
                message="No JSON mappings configured",
                latency_ms=elapsed(),
                error_code=ErrorCode.NO_MAPPINGS.value,
            )

        logger.info("Testing Generic REST connection to %s", rest.resolved_base_url)
        self._configure_rate_limit(rest)
        try:
            probe = mappings.connection_test
            if probe is None:
                await self.service.get(rest, mappings.entity_mappings()[0].endpoint, headers=dict(rest.default_headers))
            else:
                failure = await self._run_probe(rest, probe)
                if failure is not None:
                    code, message = failure
                    return ConnectionTestResult(
                        success=False, message=message, latency_ms=elapsed(), error_code=code
                    )
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Generic REST connection test failed: %s (%s)", error.message, error.error_code)
            return ConnectionTestResult.from_error(error, latency_ms=elapsed())

        return ConnectionTestResult(
            success=True,
            message="Successfully connected to Generic REST API",
            latency_ms=elapsed(),
            version=self.version,
        )

    async def _run_probe(
        self, config: GenericRESTConnectionConfig, probe: RESTConnectionTest
    ) -> tuple[str, str] | None:
        """Return (error_code, message) when the probe response disappoints."""
        headers = dict(config.default_headers)
        if probe.method == "POST":
            resp = await self.service.post(config, probe.endpoint, headers=headers)
        else:
            resp = await self.service.get(config, probe.endpoint, headers=headers)

        if resp.status_code != probe.expected_status:
            return (
                ErrorCode.CONNECTION_TEST_STATUS_MISMATCH.value,
                f"Connection test expected status {probe.expected_status} but got {resp.status_code}",
            )
        if probe.success_path:
            value = json_path.evaluate(resp.data, probe.success_path)
            if value is None:
                return (
                    ErrorCode.CONNECTION_TEST_PATH_FAILED.value,
                    f"Connection test path {probe.success_path!r} returned no value",
                )
            if probe.expected_value is not None and str(value) != probe.expected_value:
                return (
                    ErrorCode.CONNECTION_TEST_VALUE_MISMATCH.value,
                    f"Connection test expected {probe.expected_value!r} but got {str(value)!r}",
                )
        return None

    # --- Sync ---

    async def sync_departments(self, config: ConnectionConfig) -> SyncResult[POSDepartment]:
        rest = self._validate_config(config)
        return await self._sync(rest, EntityType.DEPARTMENTS, rest.mappings.departments, build_department)

    async def sync_tender_types(self, config: ConnectionConfig) -> SyncResult[POSTenderType]:
        rest = self._validate_config(config)
        return await self._sync(rest, EntityType.TENDER_TYPES, rest.mappings.tender_types, build_tender_type)

    async def sync_cashiers(self, config: ConnectionConfig) -> SyncResult[POSCashier]:
        rest = self._validate_config(config)
        return await self._sync(rest, EntityType.CASHIERS, rest.mappings.cashiers, build_cashier)

    async def sync_tax_rates(self, config: ConnectionConfig) -> SyncResult[POSTaxRate]:
        rest = self._validate_config(config)
        return await self._sync(rest, EntityType.TAX_RATES, rest.mappings.tax_rates, build_tax_rate)

    async def _sync(
        self,
        config: GenericRESTConnectionConfig,
        entity_type: EntityType,
        mapping: JSONEntityMapping | None,
        build: RecordBuilder[Any],
    ) -> SyncResult[Any]:
        if mapping is None:
            logger.warning("No %s mapping configured", entity_type.value)
            return SyncResult(entity_type=entity_type.value)

        self._configure_rate_limit(config)
        skipped = 0

        def extract(data: Any) -> Page[Any]:
            nonlocal skipped
            mapped = self.engine.extract(data, mapping, build, entity_type.value)
            skipped += mapped.skipped_count
            return Page(items=mapped.records, raw_count=mapped.source_count)

        async def run() -> SyncResult[Any]:
            records = await self.service.fetch_all(config, mapping, extract, headers=config.default_headers)
            if mapping.pagination is None:
                records = records[: self.service.settings.pagination.max_items]
            logger.info("Synced %d %s from Generic REST API", len(records), entity_type.value)
            return SyncResult(entity_type=entity_type.value, records=records, skipped=skipped)

        return await collect(entity_type, run)

    # --- Helpers ---

    def _configure_rate_limit(self, config: GenericRESTConnectionConfig) -> None:
        if config.rate_limit is None:
            policy = self.default_rate_limit
        else:
            policy = RateLimitPolicy(
                max_requests=config.rate_limit.max_requests,
                window_seconds=config.rate_limit.window_seconds,
                queue_requests=config.rate_limit.queue_requests,
            )
        self.service.configure_rate_limit(config, policy)

    @staticmethod
    def _validate_config(config: ConnectionConfig) -> GenericRESTConnectionConfig:
        if not isinstance(config, GenericRESTConnectionConfig) or config.mappings is None:
            raise POSAdapterError(
                "Generic REST mappings are required",
                400,
                ErrorCode.MISSING_MAPPINGS,
            )
        return config


