from collections.abc import Generator
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from vitalstore.core.config import Settings

if TYPE_CHECKING:
    from vitalstore.services.catalog import CatalogService
    from vitalstore.services.observations import ObservationService


def get_settings_from_app(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise HTTPException(status_code=503, detail="Application settings are not initialized")
    return settings


def get_catalog_service(request: Request) -> "CatalogService":
    service = getattr(request.app.state, "catalog_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Catalog service is not initialized")
    return service


def get_observation_service(request: Request) -> "ObservationService":
    service = getattr(request.app.state, "observation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Observation service is not initialized")
    return service


def get_db(request: Request) -> Generator[Session, None, None]:
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise HTTPException(status_code=503, detail="Database session factory is not initialized")
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
