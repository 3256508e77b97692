from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from vitalstore.core.config import DerivedRowPolicy, Settings
from vitalstore.core.errors import ROW_EVALUATION_ERRORS, NotFoundError
from vitalstore.db.scope import session_scope
from vitalstore.domain.catalog import (
    DataSource,
    Metric,
    NewDataSource,
    Observation,
    ObservationPoint,
    ObservationValue,
    SelectableMetric,
    ValueType,
)
from vitalstore.domain.recipes import DerivedRecipe, PrimitiveRecipe, Recipe
from vitalstore.repositories.aligned_series import iter_aligned_rows
from vitalstore.repositories.metrics import (
    get_metric,
    get_metrics_by_ids,
    list_selectable_metrics,
    metric_exists,
)
from vitalstore.repositories.observations import iter_series, record_observation
from vitalstore.repositories.pagination import TimeRange
from vitalstore.repositories.recipes import get_recipe, list_selectable_recipes
from vitalstore.repositories.subjects import create_data_source, data_source_exists, subject_exists
from vitalstore.services.evaluator import DerivedEvaluator


@dataclass(frozen=True)
class MetricSeries:
    metric: Metric
    points: list[ObservationPoint]


@dataclass(frozen=True)
class SkippedRow:
    observed_at: datetime
    reason: str


@dataclass(frozen=True)
class DerivedSeries:
    definition: Recipe
    points: list[ObservationPoint]
    value_type: ValueType
    skipped: list[SkippedRow] = field(default_factory=list)


@dataclass(frozen=True)
class RecordedObservation:
    observation: Observation
    source: DataSource


class ObservationService:
    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: sessionmaker,
        evaluator: DerivedEvaluator,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._evaluator = evaluator
        self._logger = logging.getLogger("vitalstore.observations")

    def record_observation(
        self,
        subject_id: int,
        metric_id: int,
        value: ObservationValue | str | int | float | bool,
        observed_at: datetime,
        source_id: int | None = None,
    ) -> Observation:
        with session_scope(self._session_factory) as db:
            self._require_targets(db, subject_id=subject_id, metric_id=metric_id)
            if source_id is not None and not data_source_exists(db, source_id):
                raise NotFoundError("data source", source_id)
            observation = record_observation(
                db,
                subject_id=subject_id,
                metric_id=metric_id,
                value=ObservationValue.of(value),
                observed_at=observed_at,
                source_id=source_id,
            )
        self._logger.debug(
            "recorded observation id=%s subject_id=%s metric_id=%s",
            observation.id,
            subject_id,
            metric_id,
        )
        return observation

    def record_observation_with_source(
        self,
        subject_id: int,
        metric_id: int,
        value: ObservationValue | str | int | float | bool,
        observed_at: datetime,
        source: NewDataSource,
    ) -> RecordedObservation:
        with session_scope(self._session_factory) as db:
            self._require_targets(db, subject_id=subject_id, metric_id=metric_id)
            created_source = create_data_source(
                db,
                kind=source.kind,
                name=source.name,
                metadata=source.metadata,
                commit=False,
            )
            observation = record_observation(
                db,
                subject_id=subject_id,
                metric_id=metric_id,
                value=ObservationValue.of(value),
                observed_at=observed_at,
                source_id=created_source.id,
                commit=False,
            )
            db.commit()
        self._logger.debug(
            "recorded observation id=%s subject_id=%s metric_id=%s source_id=%s",
            observation.id,
            subject_id,
            metric_id,
            created_source.id,
        )
        return RecordedObservation(observation=observation, source=created_source)

    def query_series(
        self,
        subject_id: int,
        metric_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> MetricSeries:
        time_range = TimeRange(start=start, end=end).resolve()
        with session_scope(self._session_factory) as db:
            if not subject_exists(db, subject_id):
                raise NotFoundError("subject", subject_id)
            metric = get_metric(db, metric_id)
            if metric is None:
                raise NotFoundError("metric", metric_id)
            points = list(
                iter_series(
                    db,
                    subject_id=subject_id,
                    metric_id=metric_id,
                    time_range=time_range,
                    yield_per=self._settings.series_yield_per,
                )
            )
        return MetricSeries(metric=metric, points=points)

    def query_derived_series(
        self,
        subject_id: int,
        recipe_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        policy: DerivedRowPolicy | None = None,
    ) -> DerivedSeries:
        time_range = TimeRange(start=start, end=end).resolve()
        with session_scope(self._session_factory) as db:
            if not subject_exists(db, subject_id):
                raise NotFoundError("subject", subject_id)
            recipe = get_recipe(db, recipe_id)
            if recipe is None:
                raise NotFoundError("recipe", recipe_id)
            if isinstance(recipe, PrimitiveRecipe):
                return self._primitive_series(db, recipe, subject_id=subject_id, time_range=time_range)
            return self._derived_series(
                db,
                recipe,
                subject_id=subject_id,
                time_range=time_range,
                policy=policy or self._settings.derived_row_policy,
            )

    def list_selectable_metrics(self) -> list[SelectableMetric]:
        with session_scope(self._session_factory) as db:
            metrics = list_selectable_metrics(db)
        return [SelectableMetric(id=metric.id, name=metric.name, unit=metric.unit) for metric in metrics]

    def list_selectable_recipes(self) -> list[DerivedRecipe]:
        with session_scope(self._session_factory) as db:
            return list_selectable_recipes(db)

    def _require_targets(self, db: Session, *, subject_id: int, metric_id: int) -> None:
        if not subject_exists(db, subject_id):
            raise NotFoundError("subject", subject_id)
        if not metric_exists(db, metric_id):
            raise NotFoundError("metric", metric_id)

    def _primitive_series(
        self,
        db: Session,
        recipe: PrimitiveRecipe,
        *,
        subject_id: int,
        time_range: TimeRange,
    ) -> DerivedSeries:
        metric = get_metric(db, recipe.metric_id)
        if metric is None:
            raise NotFoundError("metric", recipe.metric_id)
        points = list(
            iter_series(
                db,
                subject_id=subject_id,
                metric_id=recipe.metric_id,
                time_range=time_range,
                yield_per=self._settings.series_yield_per,
            )
        )
        return DerivedSeries(definition=recipe, points=points, value_type=metric.value_type)

    def _derived_series(
        self,
        db: Session,
        recipe: DerivedRecipe,
        *,
        subject_id: int,
        time_range: TimeRange,
        policy: DerivedRowPolicy,
    ) -> DerivedSeries:
        calculation = self._evaluator.registry.require(recipe.calc_key)
        bindings = recipe.bind(calculation.params)
        metrics = get_metrics_by_ids(db, recipe.deps)
        for metric_id in recipe.deps:
            if metric_id not in metrics:
                raise NotFoundError("metric", metric_id)
        value_types = {metric_id: metric.value_type for metric_id, metric in metrics.items()}

        points: list[ObservationPoint] = []
        skipped: list[SkippedRow] = []
        rows = iter_aligned_rows(
            db,
            subject_id=subject_id,
            dependency_ids=recipe.deps,
            time_range=time_range,
            yield_per=self._settings.series_yield_per,
        )
        for row in rows:
            try:
                value = self._evaluator.evaluate(
                    recipe.calc_key,
                    row.values,
                    bindings=bindings,
                    value_types=value_types,
                    observed_at=row.observed_at,
                )
            except ROW_EVALUATION_ERRORS as exc:
                if policy == "abort":
                    self._logger.warning(
                        "aborting derived series recipe_id=%s subject_id=%s observed_at=%s error=%s",
                        recipe.id,
                        subject_id,
                        row.observed_at.isoformat(),
                        exc,
                    )
                    raise
                self._logger.warning(
                    "skipping derived row recipe_id=%s subject_id=%s observed_at=%s error=%s",
                    recipe.id,
                    subject_id,
                    row.observed_at.isoformat(),
                    exc,
                )
                skipped.append(SkippedRow(observed_at=row.observed_at, reason=str(exc)))
                continue
            points.append(ObservationPoint(value=ObservationValue.of(value), observed_at=row.observed_at))

        self._logger.debug(
            "evaluated derived series recipe_id=%s subject_id=%s points=%s skipped=%s",
            recipe.id,
            subject_id,
            len(points),
            len(skipped),
        )
        return DerivedSeries(
            definition=recipe,
            points=points,
            value_type=ValueType.FLOAT,
            skipped=skipped,
        )
