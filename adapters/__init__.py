"""POSSync adapter registry.

Each POS system type maps to an adapter class. ``get_adapter`` builds a
fresh instance so every caller owns its own rate-limit and token state.
"""

from enum import Enum
from typing import Any, Callable

from adapters.generic_rest import GenericRESTAdapter, GenericRESTConnectionConfig
from adapters.generic_xml import GenericXMLAdapter, GenericXMLConnectionConfig
from adapters.naxml_file import FileExchangeConnectionConfig, NAXMLFileAdapter
from possync.errors import ErrorCode, POSAdapterError


class POSSystemType(str, Enum):
    GENERIC_REST = "generic_rest"
    GENERIC_XML = "generic_xml"
    NAXML_FILE = "naxml_file"


_REGISTRY: dict[POSSystemType, Callable[..., Any]] = {
    POSSystemType.GENERIC_REST: GenericRESTAdapter,
    POSSystemType.GENERIC_XML: GenericXMLAdapter,
    POSSystemType.NAXML_FILE: NAXMLFileAdapter,
}


def get_adapter(pos_type: POSSystemType | str, **kwargs: Any):
    """Build the adapter for ``pos_type``. Raises INVALID_CONFIG if unknown."""
    try:
        key = POSSystemType(pos_type)
    except ValueError:
        raise POSAdapterError(
            f"Unsupported POS type: {pos_type}",
            400,
            ErrorCode.INVALID_CONFIG,
            details={"supported": [t.value for t in POSSystemType]},
        ) from None
    return _REGISTRY[key](**kwargs)


def list_adapters() -> list[dict[str, Any]]:
    adapters = []
    for pos_type, factory in _REGISTRY.items():
        adapter = factory()
        adapters.append({
            "pos_type": pos_type.value,
            "display_name": adapter.display_name,
            "capabilities": adapter.capabilities().to_dict(),
        })
    return adapters


__all__ = [
    "FileExchangeConnectionConfig",
    "GenericRESTAdapter",
    "GenericRESTConnectionConfig",
    "GenericXMLAdapter",
    "GenericXMLConnectionConfig",
    "NAXMLFileAdapter",
    "POSSystemType",
    "get_adapter",
    "list_adapters",
]
