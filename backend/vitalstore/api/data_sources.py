from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from vitalstore.dependencies import get_catalog_service
from vitalstore.repositories.pagination import PaginationParams
from vitalstore.schemas.pagination import PageResponse
from vitalstore.schemas.subjects import DataSourceCreateRequest, DataSourceResponse
from vitalstore.services.catalog import CatalogService


router = APIRouter(prefix="/api", tags=["data-sources"])


@router.post("/data-sources", response_model=DataSourceResponse, status_code=status.HTTP_201_CREATED)
def post_data_source(
    payload: DataSourceCreateRequest,
    catalog: CatalogService = Depends(get_catalog_service),
) -> DataSourceResponse:
    source = catalog.create_data_source(kind=payload.kind, name=payload.name, metadata=payload.metadata)
    return DataSourceResponse.model_validate(source)


@router.get("/data-sources", response_model=PageResponse[DataSourceResponse])
def get_data_sources(
    kind: str | None = Query(default=None, min_length=1, max_length=64),
    page: int = Query(default=1, ge=0),
    page_size: int = Query(default=20, ge=0),
    catalog: CatalogService = Depends(get_catalog_service),
) -> PageResponse[DataSourceResponse]:
    result = catalog.list_data_sources(params=PaginationParams(page=page, page_size=page_size), kind=kind)
    return PageResponse[DataSourceResponse].from_page(
        result,
        [DataSourceResponse.model_validate(source) for source in result.items],
    )
