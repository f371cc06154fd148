"""POS integration API router.

- GET  /adapters: registered POS types and their capabilities
- POST /test-connection: operator "test connection" button
- POST /sync/{entity_type}: run one entity sync and return the summary

Vendor failures come back inside the result body. Only bad requests
(unknown POS type, invalid or missing configuration) are HTTP errors.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, ValidationError

from adapters import POSSystemType, get_adapter, list_adapters
from api.middleware import get_current_store
from possync.errors import POSAdapterError
from possync.integrations import EntityType

logger = logging.getLogger(__name__)

router = APIRouter()

# One adapter per POS type for the life of the process, so rate-limit
# windows and OAuth tokens survive between requests.
_adapters: dict[POSSystemType, Any] = {}


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AdapterRequest(BaseModel):
    pos_type: POSSystemType
    config: dict[str, Any] = Field(default_factory=dict)


class SyncRequest(AdapterRequest):
    include_records: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def adapter_for(pos_type: POSSystemType):
    if pos_type not in _adapters:
        _adapters[pos_type] = get_adapter(pos_type)
    return _adapters[pos_type]


def reset_adapters() -> None:
    _adapters.clear()


def _build_config(adapter: Any, raw: dict[str, Any]):
    try:
        return adapter.config_model.model_validate(raw)
    except ValidationError as exc:
        detail = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
        raise HTTPException(status_code=422, detail=detail) from exc


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/adapters")
async def get_adapters():
    return {"data": list_adapters()}


@router.post("/test-connection")
async def test_connection(request: AdapterRequest):
    adapter = adapter_for(request.pos_type)
    config = _build_config(adapter, request.config)
    try:
        result = await adapter.test_connection(config)
    except POSAdapterError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    logger.info(
        "Connection test for store %s (%s): %s",
        get_current_store(), request.pos_type.value, "ok" if result.success else result.error_code,
    )
    return result.to_dict()


@router.post("/sync/{entity_type}")
async def sync_entity(entity_type: EntityType, request: SyncRequest):
    adapter = adapter_for(request.pos_type)
    config = _build_config(adapter, request.config)

    if entity_type is EntityType.TRANSACTIONS:
        operation = getattr(adapter, "import_transactions", None)
    else:
        operation = getattr(adapter, f"sync_{entity_type.value}")
    if operation is None:
        raise HTTPException(
            status_code=400,
            detail=f"{request.pos_type.value} does not support {entity_type.value} sync",
        )

    try:
        result = await operation(config)
    except POSAdapterError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    return result.to_dict(include_records=request.include_records)
