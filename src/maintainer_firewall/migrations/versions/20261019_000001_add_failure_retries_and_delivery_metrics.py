"""Add manual retry tracking to action_failures and the delivery_metrics table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:01.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "action_failures",
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column(
        "action_failures",
        sa.Column("last_retry_status", sa.Text(), nullable=False, server_default="never"),
    )
    op.add_column(
        "action_failures",
        sa.Column("last_retry_message", sa.Text(), nullable=False, server_default=""),
    )
    op.add_column(
        "action_failures",
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "action_failures",
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default="false"),
    )

    op.create_table(
        "delivery_metrics",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("delivery_id", sa.Text(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("processing_ms", sa.BigInteger(), nullable=False),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_delivery_metrics_recorded_at", "delivery_metrics", ["recorded_at"])


def downgrade() -> None:
    op.drop_index("idx_delivery_metrics_recorded_at", table_name="delivery_metrics")
    op.drop_table("delivery_metrics")
    op.drop_column("action_failures", "is_resolved")
    op.drop_column("action_failures", "last_retry_at")
    op.drop_column("action_failures", "last_retry_message")
    op.drop_column("action_failures", "last_retry_status")
    op.drop_column("action_failures", "retry_count")
