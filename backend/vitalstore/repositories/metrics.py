from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from vitalstore.db.models import Metric as MetricRow
from vitalstore.domain.catalog import CatalogStatus, Metric, ValueType, Visualization
from vitalstore.repositories.pagination import Page, PaginationParams, paginate, to_utc


def create_metric(
    db: Session,
    *,
    code: str,
    name: str,
    unit: str | None,
    value_type: ValueType,
    visualization: Visualization = Visualization.LINE_CHART,
) -> Metric:
    row = MetricRow(
        code=code,
        name=name,
        unit=unit,
        value_type=value_type.value,
        visualization=visualization.value,
        status=CatalogStatus.ACTIVE.value,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return metric_from_row(row)


def get_metric(db: Session, metric_id: int) -> Metric | None:
    row = db.get(MetricRow, metric_id)
    return metric_from_row(row) if row is not None else None


def get_metric_by_code(db: Session, code: str) -> Metric | None:
    row = db.scalars(select(MetricRow).where(MetricRow.code == code)).first()
    return metric_from_row(row) if row is not None else None


def get_metrics_by_ids(db: Session, metric_ids: Iterable[int]) -> dict[int, Metric]:
    ids = list(dict.fromkeys(metric_ids))
    if not ids:
        return {}
    rows = db.scalars(select(MetricRow).where(MetricRow.id.in_(ids)))
    return {row.id: metric_from_row(row) for row in rows}


def metric_exists(db: Session, metric_id: int) -> bool:
    return bool(db.scalar(select(exists().where(MetricRow.id == metric_id))))


def metric_code_exists(db: Session, code: str) -> bool:
    return bool(db.scalar(select(exists().where(MetricRow.code == code))))


def list_metrics(
    db: Session,
    *,
    params: PaginationParams,
    value_type: ValueType | None = None,
) -> Page[Metric]:
    statement = select(MetricRow)
    if value_type is not None:
        statement = statement.where(MetricRow.value_type == value_type.value)
    statement = statement.order_by(MetricRow.created_at.desc(), MetricRow.id.desc())
    return paginate(db, statement, params).map(metric_from_row)


def list_selectable_metrics(db: Session) -> list[Metric]:
    rows = db.scalars(
        select(MetricRow)
        .where(MetricRow.status == CatalogStatus.ACTIVE.value)
        .order_by(MetricRow.name.asc(), MetricRow.id.asc())
    )
    return [metric_from_row(row) for row in rows]


def deprecate_metric(db: Session, metric_id: int) -> Metric | None:
    row = db.get(MetricRow, metric_id)
    if row is None:
        return None
    if row.status != CatalogStatus.DEPRECATED.value:
        row.status = CatalogStatus.DEPRECATED.value
        db.add(row)
        db.commit()
        db.refresh(row)
    return metric_from_row(row)


def metric_from_row(row: MetricRow) -> Metric:
    return Metric(
        id=row.id,
        code=row.code,
        name=row.name,
        unit=row.unit,
        value_type=ValueType.parse(row.value_type),
        visualization=Visualization.parse(row.visualization),
        status=CatalogStatus.parse(row.status),
        created_at=to_utc(row.created_at),
    )
