from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from vitalstore.db.models import Observation as ObservationRow
from vitalstore.domain.catalog import Observation, ObservationPoint, ObservationValue
from vitalstore.repositories.pagination import TimeRange, to_utc


DEFAULT_YIELD_PER = 1000


def record_observation(
    db: Session,
    *,
    subject_id: int,
    metric_id: int,
    value: ObservationValue | str,
    observed_at: datetime,
    source_id: int | None = None,
    commit: bool = True,
) -> Observation:
    row = ObservationRow(
        subject_id=subject_id,
        metric_id=metric_id,
        value=str(ObservationValue.of(value)),
        observed_at=to_utc(observed_at),
        recorded_at=datetime.now(timezone.utc),
        source_id=source_id,
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    return observation_from_row(row)


def get_observation(db: Session, observation_id: int) -> Observation | None:
    row = db.get(ObservationRow, observation_id)
    return observation_from_row(row) if row is not None else None


def iter_series(
    db: Session,
    *,
    subject_id: int,
    metric_id: int,
    time_range: TimeRange | None = None,
    yield_per: int = DEFAULT_YIELD_PER,
) -> Iterator[ObservationPoint]:
    if time_range is not None and time_range.is_empty:
        return

    statement = select(ObservationRow.value, ObservationRow.observed_at).where(
        ObservationRow.subject_id == subject_id,
        ObservationRow.metric_id == metric_id,
    )
    statement = (time_range or TimeRange()).apply(statement, ObservationRow.observed_at)
    statement = statement.order_by(ObservationRow.observed_at.asc(), ObservationRow.id.asc())

    result = db.execute(statement.execution_options(yield_per=yield_per))
    for value, observed_at in result:
        yield ObservationPoint(value=ObservationValue(value), observed_at=to_utc(observed_at))


def query_series(
    db: Session,
    *,
    subject_id: int,
    metric_id: int,
    time_range: TimeRange | None = None,
) -> list[ObservationPoint]:
    return list(
        iter_series(
            db,
            subject_id=subject_id,
            metric_id=metric_id,
            time_range=time_range,
        )
    )


def observation_from_row(row: ObservationRow) -> Observation:
    return Observation(
        id=row.id,
        subject_id=row.subject_id,
        metric_id=row.metric_id,
        value=ObservationValue(row.value),
        observed_at=to_utc(row.observed_at),
        recorded_at=to_utc(row.recorded_at),
        source_id=row.source_id,
    )
