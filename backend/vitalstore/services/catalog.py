from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from vitalstore.core.config import Settings
from vitalstore.core.errors import AlreadyExistsError, NotFoundError, ValidationError
from vitalstore.db.scope import session_scope
from vitalstore.domain.catalog import DataSource, Metric, Subject, ValueType, Visualization
from vitalstore.domain.recipes import DerivedRecipe, Recipe
from vitalstore.repositories.metrics import (
    create_metric,
    deprecate_metric,
    get_metric,
    get_metrics_by_ids,
    list_metrics,
    metric_code_exists,
)
from vitalstore.repositories.pagination import Page, PaginationParams
from vitalstore.repositories.recipes import (
    create_recipe,
    deprecate_recipe,
    get_recipe,
    list_recipes,
    recipe_code_exists,
)
from vitalstore.repositories.subjects import (
    create_data_source,
    create_subject,
    get_data_source,
    get_subject,
    list_data_sources,
    list_subjects,
)
from vitalstore.services.calculations import CalculationRegistry


class CatalogService:
    """Subjects, data sources, metrics and recipes."""

    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: sessionmaker,
        registry: CalculationRegistry,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._registry = registry
        self._logger = logging.getLogger("vitalstore.catalog")

    # subjects

    def create_subject(self, *, kind: str) -> Subject:
        with session_scope(self._session_factory) as db:
            subject = create_subject(db, kind=kind)
        self._logger.info("created subject id=%s kind=%s", subject.id, subject.kind)
        return subject

    def get_subject(self, subject_id: int) -> Subject:
        with session_scope(self._session_factory) as db:
            subject = get_subject(db, subject_id)
        if subject is None:
            raise NotFoundError("subject", subject_id)
        return subject

    def list_subjects(self, *, params: PaginationParams, kind: str | None = None) -> Page[Subject]:
        with session_scope(self._session_factory) as db:
            return list_subjects(db, params=self._normalize(params), kind=kind)

    # data sources

    def create_data_source(
        self,
        *,
        kind: str,
        name: str,
        metadata: dict[str, Any] | None = None,
    ) -> DataSource:
        if name.strip() == "":
            raise ValidationError("data source name must not be empty")
        with session_scope(self._session_factory) as db:
            source = create_data_source(db, kind=kind, name=name, metadata=metadata)
        self._logger.info("created data source id=%s kind=%s", source.id, source.kind)
        return source

    def get_data_source(self, source_id: int) -> DataSource:
        with session_scope(self._session_factory) as db:
            source = get_data_source(db, source_id)
        if source is None:
            raise NotFoundError("data source", source_id)
        return source

    def list_data_sources(self, *, params: PaginationParams, kind: str | None = None) -> Page[DataSource]:
        with session_scope(self._session_factory) as db:
            return list_data_sources(db, params=self._normalize(params), kind=kind)

    # metrics

    def create_metric(
        self,
        *,
        code: str,
        name: str,
        unit: str | None,
        value_type: ValueType,
        visualization: Visualization = Visualization.LINE_CHART,
    ) -> Metric:
        code = code.strip()
        name = name.strip()
        if code == "" or name == "":
            raise ValidationError("metric code and name must not be empty")
        if unit is not None:
            unit = unit.strip() or None

        with session_scope(self._session_factory) as db:
            if metric_code_exists(db, code):
                raise AlreadyExistsError("metric", "code", code)
            try:
                metric = create_metric(
                    db,
                    code=code,
                    name=name,
                    unit=unit,
                    value_type=value_type,
                    visualization=visualization,
                )
            except IntegrityError as exc:
                db.rollback()
                raise AlreadyExistsError("metric", "code", code) from exc
        self._logger.info(
            "created metric id=%s code=%s value_type=%s",
            metric.id,
            metric.code,
            metric.value_type.value,
        )
        return metric

    def get_metric(self, metric_id: int) -> Metric:
        with session_scope(self._session_factory) as db:
            metric = get_metric(db, metric_id)
        if metric is None:
            raise NotFoundError("metric", metric_id)
        return metric

    def list_metrics(
        self,
        *,
        params: PaginationParams,
        value_type: ValueType | None = None,
    ) -> Page[Metric]:
        with session_scope(self._session_factory) as db:
            return list_metrics(db, params=self._normalize(params), value_type=value_type)

    def deprecate_metric(self, metric_id: int) -> Metric:
        with session_scope(self._session_factory) as db:
            metric = deprecate_metric(db, metric_id)
        if metric is None:
            raise NotFoundError("metric", metric_id)
        self._logger.info("deprecated metric id=%s code=%s", metric.id, metric.code)
        return metric

    # recipes

    def create_recipe(self, recipe: Recipe) -> Recipe:
        with session_scope(self._session_factory) as db:
            known = get_metrics_by_ids(db, recipe.deps)
            for metric_id in recipe.deps:
                if metric_id not in known:
                    raise NotFoundError("metric", metric_id)

            if isinstance(recipe, DerivedRecipe):
                calculation = self._registry.require(recipe.calc_key)
                recipe.bind(calculation.params)
                code = recipe.metadata.code
                if recipe_code_exists(db, code):
                    raise AlreadyExistsError("recipe", "code", code)

            try:
                created = create_recipe(db, recipe)
            except IntegrityError as exc:
                db.rollback()
                if isinstance(recipe, DerivedRecipe):
                    raise AlreadyExistsError("recipe", "code", recipe.metadata.code) from exc
                raise ValidationError(f"recipe rejected by storage: {exc.orig}") from exc
        self._logger.info(
            "created recipe id=%s kind=%s deps=%s",
            created.id,
            created.kind,
            ",".join(str(dep) for dep in created.deps),
        )
        return created

    def get_recipe(self, recipe_id: int) -> Recipe:
        with session_scope(self._session_factory) as db:
            recipe = get_recipe(db, recipe_id)
        if recipe is None:
            raise NotFoundError("recipe", recipe_id)
        return recipe

    def list_recipes(self, *, calc_key: str | None = None) -> list[Recipe]:
        with session_scope(self._session_factory) as db:
            return list_recipes(db, calc_key=calc_key)

    def deprecate_recipe(self, recipe_id: int) -> Recipe:
        with session_scope(self._session_factory) as db:
            recipe = get_recipe(db, recipe_id)
            if recipe is None:
                raise NotFoundError("recipe", recipe_id)
            if not isinstance(recipe, DerivedRecipe):
                raise ValidationError("primitive recipes have no status to deprecate")
            deprecated = deprecate_recipe(db, recipe_id)
        self._logger.info("deprecated recipe id=%s", recipe_id)
        return deprecated  # type: ignore[return-value]

    def _normalize(self, params: PaginationParams) -> PaginationParams:
        return params.normalized(
            default_page_size=self._settings.pagination_default_page_size,
            max_page_size=self._settings.pagination_max_page_size,
        )
