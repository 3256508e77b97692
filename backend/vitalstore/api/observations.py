from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from vitalstore.api.recipes import recipe_to_response
from vitalstore.core.errors import ValidationError
from vitalstore.dependencies import get_observation_service
from vitalstore.domain.catalog import NewDataSource, ObservationPoint, ValueType
from vitalstore.schemas.catalog import MetricResponse
from vitalstore.schemas.observations import (
    DerivedSeriesResponse,
    MetricSeriesResponse,
    ObservationCreateRequest,
    ObservationResponse,
    SeriesPointResponse,
    SkippedRowResponse,
)
from vitalstore.schemas.subjects import DataSourceResponse
from vitalstore.services.observations import ObservationService


router = APIRouter(prefix="/api/observations", tags=["observations"])


@router.post("", response_model=ObservationResponse, status_code=status.HTTP_201_CREATED)
def post_observation(
    payload: ObservationCreateRequest,
    service: ObservationService = Depends(get_observation_service),
) -> ObservationResponse:
    if payload.source is not None and payload.source_id is not None:
        raise ValidationError("give either source_id or source, not both")

    source_response: DataSourceResponse | None = None
    if payload.source is not None:
        recorded = service.record_observation_with_source(
            payload.subject_id,
            payload.metric_id,
            payload.value,
            payload.observed_at,
            NewDataSource(
                kind=payload.source.kind,
                name=payload.source.name,
                metadata=payload.source.metadata,
            ),
        )
        observation = recorded.observation
        source_response = DataSourceResponse.model_validate(recorded.source)
    else:
        observation = service.record_observation(
            payload.subject_id,
            payload.metric_id,
            payload.value,
            payload.observed_at,
            source_id=payload.source_id,
        )

    return ObservationResponse(
        id=observation.id,
        subject_id=observation.subject_id,
        metric_id=observation.metric_id,
        value=str(observation.value),
        observed_at=observation.observed_at,
        recorded_at=observation.recorded_at,
        source_id=observation.source_id,
        source=source_response,
    )


@router.get("/series", response_model=MetricSeriesResponse)
def get_series(
    subject_id: int = Query(ge=1),
    metric_id: int = Query(ge=1),
    from_ts: datetime | None = Query(default=None, alias="from"),
    to_ts: datetime | None = Query(default=None, alias="to"),
    service: ObservationService = Depends(get_observation_service),
) -> MetricSeriesResponse:
    series = service.query_series(subject_id, metric_id, from_ts, to_ts)
    return MetricSeriesResponse(
        subject_id=subject_id,
        metric=MetricResponse.model_validate(series.metric),
        points=[_point_response(point, series.metric.value_type) for point in series.points],
    )


@router.get("/derived", response_model=DerivedSeriesResponse)
def get_derived_series(
    subject_id: int = Query(ge=1),
    recipe_id: int = Query(ge=1),
    from_ts: datetime | None = Query(default=None, alias="from"),
    to_ts: datetime | None = Query(default=None, alias="to"),
    service: ObservationService = Depends(get_observation_service),
) -> DerivedSeriesResponse:
    series = service.query_derived_series(subject_id, recipe_id, from_ts, to_ts)
    return DerivedSeriesResponse(
        subject_id=subject_id,
        definition=recipe_to_response(series.definition),
        points=[_point_response(point, series.value_type) for point in series.points],
        skipped=[
            SkippedRowResponse(observed_at=row.observed_at, reason=row.reason)
            for row in series.skipped
        ],
    )


def _point_response(point: ObservationPoint, value_type: ValueType) -> SeriesPointResponse:
    return SeriesPointResponse(
        value=str(point.value),
        numeric=point.value.try_parse_numeric(value_type),
        observed_at=point.observed_at,
    )
