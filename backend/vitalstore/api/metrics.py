from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from vitalstore.dependencies import get_catalog_service, get_observation_service
from vitalstore.domain.catalog import ValueType
from vitalstore.repositories.pagination import PaginationParams
from vitalstore.schemas.catalog import MetricCreateRequest, MetricResponse, SelectableMetricResponse
from vitalstore.schemas.pagination import PageResponse
from vitalstore.services.catalog import CatalogService
from vitalstore.services.observations import ObservationService


router = APIRouter(prefix="/api", tags=["metrics"])


@router.post("/metrics", response_model=MetricResponse, status_code=status.HTTP_201_CREATED)
def post_metric(
    payload: MetricCreateRequest,
    catalog: CatalogService = Depends(get_catalog_service),
) -> MetricResponse:
    metric = catalog.create_metric(
        code=payload.code,
        name=payload.name,
        unit=payload.unit,
        value_type=payload.value_type,
        visualization=payload.visualization,
    )
    return MetricResponse.model_validate(metric)


@router.get("/metrics", response_model=PageResponse[MetricResponse])
def get_metrics(
    value_type: ValueType | None = None,
    page: int = Query(default=1, ge=0),
    page_size: int = Query(default=20, ge=0),
    catalog: CatalogService = Depends(get_catalog_service),
) -> PageResponse[MetricResponse]:
    result = catalog.list_metrics(
        params=PaginationParams(page=page, page_size=page_size),
        value_type=value_type,
    )
    return PageResponse[MetricResponse].from_page(
        result,
        [MetricResponse.model_validate(metric) for metric in result.items],
    )


@router.get("/metrics/selectable", response_model=list[SelectableMetricResponse])
def get_selectable_metrics(
    observations: ObservationService = Depends(get_observation_service),
) -> list[SelectableMetricResponse]:
    return [SelectableMetricResponse.model_validate(metric) for metric in observations.list_selectable_metrics()]


@router.get("/metrics/{metric_id}", response_model=MetricResponse)
def get_metric(
    metric_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
) -> MetricResponse:
    return MetricResponse.model_validate(catalog.get_metric(metric_id))


@router.post("/metrics/{metric_id}/deprecate", response_model=MetricResponse)
def post_deprecate_metric(
    metric_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
) -> MetricResponse:
    return MetricResponse.model_validate(catalog.deprecate_metric(metric_id))
