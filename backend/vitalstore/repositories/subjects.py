from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from vitalstore.db.models import DataSource as DataSourceRow
from vitalstore.db.models import Subject as SubjectRow
from vitalstore.domain.catalog import DataSource, DataSourceKind, Subject, SubjectKind, normalize_kind
from vitalstore.repositories.pagination import Page, PaginationParams, paginate, to_utc


def create_subject(db: Session, *, kind: str) -> Subject:
    row = SubjectRow(
        kind=normalize_kind(kind, SubjectKind),
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return subject_from_row(row)


def get_subject(db: Session, subject_id: int) -> Subject | None:
    row = db.get(SubjectRow, subject_id)
    return subject_from_row(row) if row is not None else None


def subject_exists(db: Session, subject_id: int) -> bool:
    return bool(db.scalar(select(exists().where(SubjectRow.id == subject_id))))


def list_subjects(
    db: Session,
    *,
    params: PaginationParams,
    kind: str | None = None,
) -> Page[Subject]:
    statement = select(SubjectRow)
    if kind is not None:
        statement = statement.where(SubjectRow.kind == normalize_kind(kind, SubjectKind))
    statement = statement.order_by(SubjectRow.created_at.desc(), SubjectRow.id.desc())
    return paginate(db, statement, params).map(subject_from_row)


def create_data_source(
    db: Session,
    *,
    kind: str,
    name: str,
    metadata: dict[str, Any] | None = None,
    commit: bool = True,
) -> DataSource:
    row = DataSourceRow(
        kind=normalize_kind(kind, DataSourceKind),
        name=name.strip(),
        metadata_json=metadata,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    return data_source_from_row(row)


def get_data_source(db: Session, source_id: int) -> DataSource | None:
    row = db.get(DataSourceRow, source_id)
    return data_source_from_row(row) if row is not None else None


def data_source_exists(db: Session, source_id: int) -> bool:
    return bool(db.scalar(select(exists().where(DataSourceRow.id == source_id))))


def list_data_sources(
    db: Session,
    *,
    params: PaginationParams,
    kind: str | None = None,
) -> Page[DataSource]:
    statement = select(DataSourceRow)
    if kind is not None:
        statement = statement.where(DataSourceRow.kind == normalize_kind(kind, DataSourceKind))
    statement = statement.order_by(DataSourceRow.created_at.desc(), DataSourceRow.id.desc())
    return paginate(db, statement, params).map(data_source_from_row)


def subject_from_row(row: SubjectRow) -> Subject:
    return Subject(id=row.id, kind=row.kind, created_at=to_utc(row.created_at))


def data_source_from_row(row: DataSourceRow) -> DataSource:
    return DataSource(
        id=row.id,
        kind=row.kind,
        name=row.name,
        metadata=row.metadata_json,
        created_at=to_utc(row.created_at),
    )
