from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from vitalstore.api.data_sources import router as data_sources_router
from vitalstore.api.metrics import router as metrics_router
from vitalstore.api.observations import router as observations_router
from vitalstore.api.recipes import router as recipes_router
from vitalstore.api.subjects import router as subjects_router
from vitalstore.core.config import Settings, get_settings
from vitalstore.core.errors import (
    AlreadyExistsError,
    CalculationError,
    MissingDependencyError,
    NotFoundError,
    ObservationCoreError,
    StorageError,
    UnknownCalculationError,
    ValidationError,
)
from vitalstore.core.logging import configure_logging
from vitalstore.db.scope import check_db_connection
from vitalstore.dependencies import get_db
from vitalstore.services.calculations import CalculationRegistry, default_registry
from vitalstore.services.catalog import CatalogService
from vitalstore.services.evaluator import DerivedEvaluator
from vitalstore.services.observations import ObservationService


ERROR_STATUS: tuple[tuple[type[ObservationCoreError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (MissingDependencyError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CalculationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    # a stored recipe naming an unregistered calculation is a deployment problem
    (UnknownCalculationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for_error(exc: ObservationCoreError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _default_session_factory() -> sessionmaker:
    # importing the session module builds the engine from settings
    from vitalstore.db.session import SessionLocal

    return SessionLocal


def create_app(
    *,
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
    registry: CalculationRegistry | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved_settings = settings or get_settings()
        configure_logging(resolved_settings.log_level)
        resolved_session_factory = session_factory or _default_session_factory()
        resolved_registry = registry or default_registry()

        app.state.settings = resolved_settings
        app.state.session_factory = resolved_session_factory
        app.state.calculation_registry = resolved_registry
        app.state.catalog_service = CatalogService(
            settings=resolved_settings,
            session_factory=resolved_session_factory,
            registry=resolved_registry,
        )
        app.state.observation_service = ObservationService(
            settings=resolved_settings,
            session_factory=resolved_session_factory,
            evaluator=DerivedEvaluator(resolved_registry),
        )
        yield

    app = FastAPI(title="vitalstore backend", lifespan=lifespan)
    app.include_router(subjects_router)
    app.include_router(data_sources_router)
    app.include_router(metrics_router)
    app.include_router(recipes_router)
    app.include_router(observations_router)

    @app.exception_handler(ObservationCoreError)
    async def handle_core_error(request: Request, exc: ObservationCoreError) -> JSONResponse:
        return JSONResponse(
            status_code=status_for_error(exc),
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "backend"}

    @app.get("/status")
    def get_status(request: Request, db: Session = Depends(get_db)):
        db_ok, db_error = check_db_connection(db)
        app_settings: Settings = request.app.state.settings
        registry_in_use: CalculationRegistry = request.app.state.calculation_registry
        return {
            "status": "ok" if db_ok else "degraded",
            "database": {"ok": db_ok, "error": db_error},
            "derived_row_policy": app_settings.derived_row_policy,
            "calculations": registry_in_use.keys(),
        }

    return app


app = create_app()
