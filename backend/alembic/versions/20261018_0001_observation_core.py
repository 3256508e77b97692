"""observation store + metric/recipe catalog

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "subjects",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column("kind", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "data_sources",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column("kind", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "metrics",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column("code", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("value_type", sa.String(length=16), nullable=False),
        sa.Column("visualization", sa.String(length=32), nullable=False, server_default="line_chart"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_metrics_code"),
        sa.CheckConstraint(
            "value_type IN ('integer','float','decimal','boolean','text')",
            name="ck_metrics_value_type",
        ),
        sa.CheckConstraint(
            "status IN ('active','deprecated')",
            name="ck_metrics_status",
        ),
    )

    op.create_table(
        "recipes",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("deps", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("calc_key", sa.String(length=64), nullable=True),
        sa.Column("arg_map", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("expr", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("code", sa.String(length=128), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("value_type", sa.String(length=16), nullable=True),
        sa.Column("visualization", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_recipes_code"),
        sa.CheckConstraint(
            "kind IN ('primitive','derived')",
            name="ck_recipes_kind",
        ),
        sa.CheckConstraint(
            """
            (kind = 'primitive'
             AND calc_key IS NULL AND arg_map IS NULL AND expr IS NULL
             AND code IS NULL AND name IS NULL AND unit IS NULL
             AND value_type IS NULL AND visualization IS NULL AND status IS NULL
             AND jsonb_array_length(deps) = 1)
            OR
            (kind = 'derived'
             AND calc_key IS NOT NULL AND code IS NOT NULL AND name IS NOT NULL
             AND unit IS NOT NULL AND value_type IS NOT NULL
             AND visualization IS NOT NULL AND status IS NOT NULL
             AND jsonb_array_length(deps) >= 1)
            """,
            name="ck_recipes_kind_shape",
        ),
    )

    op.create_table(
        "observations",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column("subject_id", sa.BigInteger(), nullable=False),
        sa.Column("metric_id", sa.BigInteger(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("source_id", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["metric_id"], ["metrics.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["source_id"], ["data_sources.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_observations_subject_metric_observed_at",
        "observations",
        ["subject_id", "metric_id", "observed_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_observations_subject_metric_observed_at", table_name="observations")
    op.drop_table("observations")
    op.drop_table("recipes")
    op.drop_table("metrics")
    op.drop_table("data_sources")
    op.drop_table("subjects")
