"""Time-aligned reads across several metrics of one subject.

A derived metric needs, for every instant, the values of all of its inputs at
that instant. The reader streams the filtered observations in timestamp order
and pivots each run of equal timestamps into one row, so memory use is bounded
by the size of a single timestamp group rather than by the whole range.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from itertools import groupby
from operator import itemgetter

from sqlalchemy import select
from sqlalchemy.orm import Session

from vitalstore.db.models import Observation as ObservationRow
from vitalstore.repositories.observations import DEFAULT_YIELD_PER
from vitalstore.repositories.pagination import TimeRange, to_utc


@dataclass(frozen=True)
class AlignedRow:
    observed_at: datetime
    values: dict[int, str]

    def has_all(self, metric_ids: Iterable[int]) -> bool:
        return all(metric_id in self.values for metric_id in metric_ids)


def pivot_rows(
    rows: Iterable[tuple[datetime, int, str]],
    dependency_ids: Sequence[int],
) -> Iterator[AlignedRow]:
    """Group ``(observed_at, metric_id, value)`` tuples by exact timestamp.

    ``rows`` must be sorted by timestamp. Within a group a later tuple for the
    same metric overwrites an earlier one, so callers order duplicates by
    recording time to let the most recent recording win.
    """
    wanted = set(dependency_ids)
    for observed_at, group in groupby(rows, key=itemgetter(0)):
        values: dict[int, str] = {}
        for _, metric_id, value in group:
            if metric_id in wanted:
                values[metric_id] = value
        if values:
            yield AlignedRow(observed_at=to_utc(observed_at), values=values)


def iter_aligned_rows(
    db: Session,
    *,
    subject_id: int,
    dependency_ids: Sequence[int],
    time_range: TimeRange | None = None,
    yield_per: int = DEFAULT_YIELD_PER,
) -> Iterator[AlignedRow]:
    if not dependency_ids:
        return
    if time_range is not None and time_range.is_empty:
        return

    statement = select(
        ObservationRow.observed_at,
        ObservationRow.metric_id,
        ObservationRow.value,
    ).where(
        ObservationRow.subject_id == subject_id,
        ObservationRow.metric_id.in_(list(dependency_ids)),
    )
    statement = (time_range or TimeRange()).apply(statement, ObservationRow.observed_at)
    statement = statement.order_by(
        ObservationRow.observed_at.asc(),
        ObservationRow.metric_id.asc(),
        ObservationRow.recorded_at.asc(),
        ObservationRow.id.asc(),
    )

    result = db.execute(statement.execution_options(yield_per=yield_per))
    yield from pivot_rows((tuple(row) for row in result), dependency_ids)


def query_aligned_rows(
    db: Session,
    *,
    subject_id: int,
    dependency_ids: Sequence[int],
    time_range: TimeRange | None = None,
) -> list[AlignedRow]:
    return list(
        iter_aligned_rows(
            db,
            subject_id=subject_id,
            dependency_ids=dependency_ids,
            time_range=time_range,
        )
    )
