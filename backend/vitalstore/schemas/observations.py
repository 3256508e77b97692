from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from vitalstore.schemas.catalog import MetricResponse, RecipeResponse
from vitalstore.schemas.subjects import DataSourceCreateRequest, DataSourceResponse


class ObservationCreateRequest(BaseModel):
    subject_id: int = Field(ge=1)
    metric_id: int = Field(ge=1)
    value: str | bool | int | float
    observed_at: datetime
    source_id: int | None = Field(default=None, ge=1)
    source: DataSourceCreateRequest | None = None


class ObservationResponse(BaseModel):
    id: int
    subject_id: int
    metric_id: int
    value: str
    observed_at: datetime
    recorded_at: datetime
    source_id: int | None
    source: DataSourceResponse | None = None


class SeriesPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: str
    numeric: float | None = None
    observed_at: datetime


class MetricSeriesResponse(BaseModel):
    subject_id: int
    metric: MetricResponse
    points: list[SeriesPointResponse] = Field(default_factory=list)


class SkippedRowResponse(BaseModel):
    observed_at: datetime
    reason: str


class DerivedSeriesResponse(BaseModel):
    subject_id: int
    definition: RecipeResponse
    points: list[SeriesPointResponse] = Field(default_factory=list)
    skipped: list[SkippedRowResponse] = Field(default_factory=list)
