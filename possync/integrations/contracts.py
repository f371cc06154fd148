"""
POSSync Adapter Contract.

What every vendor adapter exposes to the sync orchestrator:
- AdapterCapabilities: which sync calls are worth making
- SyncResult: per-entity received count and errors
- ConnectionTestResult: operator-facing "test connection" outcome
- POSAdapter: the structural interface vendor modules implement
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Protocol, TypeVar, runtime_checkable
import logging

from pydantic import BaseModel

from possync.errors import CONFIGURATION_ERROR_CODES, ErrorCode, POSAdapterError, normalize_error
from possync.integrations.credentials import ConnectionConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityType(str, Enum):
    DEPARTMENTS = "departments"
    TENDER_TYPES = "tender_types"
    CASHIERS = "cashiers"
    TAX_RATES = "tax_rates"
    TRANSACTIONS = "transactions"


@dataclass(frozen=True)
class AdapterCapabilities:
    sync_departments: bool = False
    sync_tender_types: bool = False
    sync_cashiers: bool = False
    sync_tax_rates: bool = False
    sync_products: bool = False
    realtime_transactions: bool = False
    webhook_support: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass
class SyncIssue:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: POSAdapterError) -> "SyncIssue":
        return cls(error.error_code, error.message, dict(error.details))


@dataclass
class SyncResult(Generic[T]):
    """Received records for one entity type; persistence fills in the rest."""
    entity_type: str
    records: list[T] = field(default_factory=list)
    errors: list[SyncIssue] = field(default_factory=list)
    skipped: int = 0

    @property
    def received_count(self) -> int:
        return len(self.records)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self, include_records: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "entity_type": self.entity_type,
            "received_count": self.received_count,
            "skipped": self.skipped,
            "success": self.success,
            "errors": [asdict(e) for e in self.errors],
        }
        if include_records:
            data["records"] = [
                r.model_dump(mode="json") if isinstance(r, BaseModel) else r for r in self.records
            ]
        return data


@dataclass
class ConnectionTestResult:
    success: bool
    message: str
    latency_ms: float = 0.0
    version: str | None = None
    serial_number: str | None = None
    error_code: str | None = None
    error_detail: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: POSAdapterError, latency_ms: float = 0.0) -> "ConnectionTestResult":
        return cls(
            success=False,
            message=error.message,
            latency_ms=latency_ms,
            error_code=error.error_code,
            error_detail=error.details or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@runtime_checkable
class POSAdapter(Protocol):
    """Structural contract for vendor adapters."""

    pos_type: str
    display_name: str
    config_model: type[ConnectionConfig]

    def capabilities(self) -> AdapterCapabilities: ...

    async def test_connection(self, config: ConnectionConfig) -> ConnectionTestResult: ...

    async def sync_departments(self, config: ConnectionConfig) -> SyncResult: ...

    async def sync_tender_types(self, config: ConnectionConfig) -> SyncResult: ...

    async def sync_cashiers(self, config: ConnectionConfig) -> SyncResult: ...

    async def sync_tax_rates(self, config: ConnectionConfig) -> SyncResult: ...


async def collect(
    entity_type: EntityType | str,
    operation: Callable[[], Awaitable[SyncResult[T]]],
) -> SyncResult[T]:
    """Run one entity sync, folding runtime failures into the result.

    Configuration errors are programmer errors and still raise.
    """
    name = entity_type.value if isinstance(entity_type, EntityType) else entity_type
    try:
        return await operation()
    except POSAdapterError as exc:
        if exc.error_code in CONFIGURATION_ERROR_CODES:
            raise
        logger.error("Sync of %s failed: %s (%s)", name, exc.message, exc.error_code)
        return SyncResult(entity_type=name, errors=[SyncIssue.from_error(exc)])
    except Exception as exc:
        error = normalize_error(exc)
        logger.exception("Sync of %s failed unexpectedly", name)
        return SyncResult(
            entity_type=name,
            errors=[SyncIssue(ErrorCode.SYNC_FAILED.value, f"Failed to sync {name}: {error.message}")],
        )
