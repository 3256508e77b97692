from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vitalstore.domain.catalog import CatalogStatus, ValueType, Visualization


class MetricCreateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    unit: str | None = Field(default=None, max_length=32)
    value_type: ValueType
    visualization: Visualization = Visualization.LINE_CHART

    @field_validator("code", "name", mode="before")
    @classmethod
    def _trim_text(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        trimmed = value.strip()
        if trimmed == "":
            raise ValueError("value must not be empty")
        return trimmed

    @field_validator("unit", mode="before")
    @classmethod
    def _trim_optional_text(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        trimmed = value.strip()
        return trimmed or None

    @field_validator("value_type", mode="before")
    @classmethod
    def _value_type_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ValueType.from_alias(value) or value
        return value


class MetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    unit: str | None
    value_type: ValueType
    visualization: Visualization
    status: CatalogStatus
    created_at: datetime


class SelectableMetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    unit: str | None


class RecipeCreateRequest(BaseModel):
    """Flat recipe payload; the kind decides which of the optional fields are allowed."""

    kind: str
    deps: list[int] = Field(min_length=1)
    calc_key: str | None = None
    arg_map: dict[str, int] | None = None
    expr: dict[str, Any] | None = None
    code: str | None = None
    name: str | None = None
    unit: str | None = None
    value_type: str | None = None
    visualization: str | None = None
    status: str | None = None


class RecipeResponse(BaseModel):
    id: int
    kind: str
    deps: list[int]
    calc_key: str | None = None
    arg_map: dict[str, int] | None = None
    expr: dict[str, Any] | None = None
    code: str | None = None
    name: str | None = None
    unit: str | None = None
    value_type: ValueType | None = None
    visualization: Visualization | None = None
    status: CatalogStatus | None = None
    created_at: datetime | None = None
