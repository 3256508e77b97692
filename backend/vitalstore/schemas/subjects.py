from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _trim_required(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    if trimmed == "":
        raise ValueError("value must not be empty")
    return trimmed


class SubjectCreateRequest(BaseModel):
    kind: str = Field(min_length=1, max_length=64)

    @field_validator("kind", mode="before")
    @classmethod
    def _trim_kind(cls, value: Any) -> Any:
        return _trim_required(value)


class SubjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    created_at: datetime


class DataSourceCreateRequest(BaseModel):
    kind: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    metadata: dict[str, Any] | None = None

    @field_validator("kind", "name", mode="before")
    @classmethod
    def _trim_text(cls, value: Any) -> Any:
        return _trim_required(value)


class DataSourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    name: str
    metadata: dict[str, Any] | None
    created_at: datetime
