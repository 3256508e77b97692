from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from vitalstore.dependencies import get_catalog_service
from vitalstore.repositories.pagination import PaginationParams
from vitalstore.schemas.pagination import PageResponse
from vitalstore.schemas.subjects import SubjectCreateRequest, SubjectResponse
from vitalstore.services.catalog import CatalogService


router = APIRouter(prefix="/api", tags=["subjects"])


@router.post("/subjects", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
def post_subject(
    payload: SubjectCreateRequest,
    catalog: CatalogService = Depends(get_catalog_service),
) -> SubjectResponse:
    subject = catalog.create_subject(kind=payload.kind)
    return SubjectResponse.model_validate(subject)


@router.get("/subjects", response_model=PageResponse[SubjectResponse])
def get_subjects(
    kind: str | None = Query(default=None, min_length=1, max_length=64),
    page: int = Query(default=1, ge=0),
    page_size: int = Query(default=20, ge=0),
    catalog: CatalogService = Depends(get_catalog_service),
) -> PageResponse[SubjectResponse]:
    result = catalog.list_subjects(params=PaginationParams(page=page, page_size=page_size), kind=kind)
    return PageResponse[SubjectResponse].from_page(
        result,
        [SubjectResponse.model_validate(subject) for subject in result.items],
    )


@router.get("/subjects/{subject_id}", response_model=SubjectResponse)
def get_subject(
    subject_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
) -> SubjectResponse:
    return SubjectResponse.model_validate(catalog.get_subject(subject_id))
