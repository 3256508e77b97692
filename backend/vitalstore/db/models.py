from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vitalstore.db.base import Base


# SQLite only autoincrements INTEGER primary keys.
BigIntId = BigInteger().with_variant(Integer(), "sqlite")
JsonDocument = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    observations: Mapped[list["Observation"]] = relationship(back_populates="subject")


class DataSource(Base):
    __tablename__ = "data_sources"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class Metric(Base):
    __tablename__ = "metrics"
    __table_args__ = (
        UniqueConstraint("code", name="uq_metrics_code"),
        CheckConstraint(
            "value_type IN ('integer','float','decimal','boolean','text')",
            name="ck_metrics_value_type",
        ),
        CheckConstraint(
            "status IN ('active','deprecated')",
            name="ck_metrics_status",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    value_type: Mapped[str] = mapped_column(String(16), nullable=False)
    visualization: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="line_chart",
        server_default="line_chart",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="active",
        server_default="active",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class Recipe(Base):
    __tablename__ = "recipes"
    __table_args__ = (
        UniqueConstraint("code", name="uq_recipes_code"),
        CheckConstraint(
            "kind IN ('primitive','derived')",
            name="ck_recipes_kind",
        ),
        CheckConstraint(
            "("
            "(kind = 'primitive'"
            " AND calc_key IS NULL AND arg_map IS NULL AND expr IS NULL"
            " AND code IS NULL AND name IS NULL AND unit IS NULL"
            " AND value_type IS NULL AND visualization IS NULL AND status IS NULL)"
            " OR "
            "(kind = 'derived'"
            " AND calc_key IS NOT NULL AND code IS NOT NULL AND name IS NOT NULL"
            " AND unit IS NOT NULL AND value_type IS NOT NULL"
            " AND visualization IS NOT NULL AND status IS NOT NULL)"
            ")",
            name="ck_recipes_kind_shape",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    deps: Mapped[list[int]] = mapped_column(JsonDocument, nullable=False)
    calc_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    arg_map: Mapped[dict[str, int] | None] = mapped_column(JsonDocument, nullable=True)
    expr: Mapped[dict[str, Any] | None] = mapped_column(JsonDocument, nullable=True)
    code: Mapped[str | None] = mapped_column(String(128), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    value_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    visualization: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class Observation(Base):
    __tablename__ = "observations"
    __table_args__ = (
        Index(
            "ix_observations_subject_metric_observed_at",
            "subject_id",
            "metric_id",
            "observed_at",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("subjects.id", ondelete="RESTRICT"),
        nullable=False,
    )
    metric_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("metrics.id", ondelete="RESTRICT"),
        nullable=False,
    )
    value: Mapped[str] = mapped_column(Text, nullable=False)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    source_id: Mapped[int | None] = mapped_column(
        BigIntId,
        ForeignKey("data_sources.id", ondelete="RESTRICT"),
        nullable=True,
    )

    subject: Mapped[Subject] = relationship(back_populates="observations")
    source: Mapped[DataSource | None] = relationship()
