"""Declarative entity mappings, supplied by configuration rather than code."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from possync.mapping.transforms import TRANSFORMS

PaginationType = Literal["offset", "cursor", "page"]

_DEFAULT_PARAMS: dict[str, tuple[str, str]] = {
    "offset": ("offset", "limit"),
    "cursor": ("cursor", "limit"),
    "page": ("page", "per_page"),
}


class FieldSpec(BaseModel):
    """How to extract one field from a record."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    default: Any = None
    transform: Optional[str] = None
    required: bool = False

    @field_validator("transform")
    @classmethod
    def known_transform(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in TRANSFORMS:
            raise ValueError(f"Unknown transform {value!r}; expected one of {sorted(TRANSFORMS)}")
        return value


def _coerce_fields(value: Any) -> Any:
    # "posCode": "$.id" is shorthand for {"path": "$.id"}
    if isinstance(value, dict):
        return {k: ({"path": v} if isinstance(v, str) else v) for k, v in value.items()}
    return value


class PaginationSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: PaginationType
    param_name: Optional[str] = None
    limit_param: Optional[str] = None
    page_size: int = Field(100, gt=0)
    max_items: int = Field(10000, gt=0)
    max_pages: int = Field(1000, gt=0)
    next_cursor_path: Optional[str] = None
    total_count_path: Optional[str] = None
    has_more_path: Optional[str] = None

    @property
    def resolved_param_name(self) -> str:
        return self.param_name or _DEFAULT_PARAMS[self.type][0]

    @property
    def resolved_limit_param(self) -> str:
        return self.limit_param or _DEFAULT_PARAMS[self.type][1]


class JSONEntityMapping(BaseModel):
    """Locate and extract one entity type from a REST endpoint."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(..., min_length=1)
    method: Literal["GET", "POST"] = "GET"
    request_body: Optional[dict[str, Any]] = None
    query: dict[str, Any] = Field(default_factory=dict)
    array_path: Optional[str] = None
    fields: dict[str, FieldSpec]
    pagination: Optional[PaginationSpec] = None

    @field_validator("fields", mode="before")
    @classmethod
    def shorthand_fields(cls, value: Any) -> Any:
        return _coerce_fields(value)


class XMLEntityMapping(BaseModel):
    """Locate and extract one entity type from an XML document."""

    model_config = ConfigDict(frozen=True)

    element_name: str = Field(..., min_length=1)
    fields: dict[str, FieldSpec]

    @field_validator("fields", mode="before")
    @classmethod
    def shorthand_fields(cls, value: Any) -> Any:
        return _coerce_fields(value)
