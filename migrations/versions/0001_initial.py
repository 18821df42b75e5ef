"""evaluations table and score histogram aggregates

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "job_worth_evaluations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("input_data", sa.JSON(), nullable=False),
        sa.Column("result_score", sa.Float(), nullable=False),
        sa.Column("client_key", sa.String(length=255), nullable=False, server_default="unknown"),
        sa.Column("client_info", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_job_worth_evaluations_result_score", "job_worth_evaluations", ["result_score"])
    op.create_index("ix_job_worth_evaluations_created_at", "job_worth_evaluations", ["created_at"])
    op.create_index(
        "ix_job_worth_evaluations_client_created",
        "job_worth_evaluations",
        ["client_key", "created_at"],
    )

    op.create_table(
        "score_histogram_buckets",
        sa.Column("score_key", sa.String(length=320), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_table(
        "score_histogram_counters",
        sa.Column("name", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.BigInteger(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_table("score_histogram_counters")
    op.drop_table("score_histogram_buckets")
    op.drop_index("ix_job_worth_evaluations_client_created", table_name="job_worth_evaluations")
    op.drop_index("ix_job_worth_evaluations_created_at", table_name="job_worth_evaluations")
    op.drop_index("ix_job_worth_evaluations_result_score", table_name="job_worth_evaluations")
    op.drop_table("job_worth_evaluations")
