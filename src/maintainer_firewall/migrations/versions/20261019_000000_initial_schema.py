"""Initial schema: events, rules, alerts, action failures.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # All timestamps are TIMESTAMPTZ: absolute instants, compared in UTC
    op.create_table(
        "events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("delivery_id", sa.Text(), nullable=False),  # X-GitHub-Delivery header
        sa.Column("event_type", sa.Text(), nullable=False),  # X-GitHub-Event header
        sa.Column("action", sa.Text(), nullable=False, server_default=""),
        sa.Column("repository_full_name", sa.Text(), nullable=False),
        sa.Column("sender_login", sa.Text(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),  # Raw JSON body
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Idempotency: decides concurrent redeliveries of the same delivery
    op.create_index("idx_events_delivery_id", "events", ["delivery_id"], unique=True)
    op.create_index("idx_events_received_at", "events", ["received_at"])
    op.create_index("idx_events_event_type_action", "events", ["event_type", "action"])

    op.create_table(
        "rules",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("keyword", sa.Text(), nullable=False),
        sa.Column("suggestion_type", sa.Text(), nullable=False),  # label | comment
        sa.Column("suggestion_value", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.CheckConstraint("suggestion_type IN ('label', 'comment')", name="ck_rules_suggestion_type"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_rules_active_event_type",
        "rules",
        [sa.text("LOWER(event_type)")],
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("delivery_id", sa.Text(), nullable=False),
        sa.Column("rule_id", sa.BigInteger(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False, server_default=""),
        sa.Column("suggestion_type", sa.Text(), nullable=False),
        sa.Column("suggestion_value", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.ForeignKeyConstraint(["delivery_id"], ["events.delivery_id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_alerts_delivery_id", "alerts", ["delivery_id"])
    op.create_index("idx_alerts_created_at", "alerts", ["created_at"])
    op.create_index("idx_alerts_event_type_action", "alerts", ["event_type", "action"])

    op.create_table(
        "action_failures",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("delivery_id", sa.Text(), nullable=False),
        sa.Column("repository_full_name", sa.Text(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("action_kind", sa.Text(), nullable=False),  # label | comment
        sa.Column("payload", sa.Text(), nullable=False),  # JSON request body that failed
        sa.Column("error", sa.Text(), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False),
        sa.Column(
            "failed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_action_failures_delivery_id", "action_failures", ["delivery_id"])
    op.create_index("idx_action_failures_failed_at", "action_failures", ["failed_at"])


def downgrade() -> None:
    op.drop_index("idx_action_failures_failed_at", table_name="action_failures")
    op.drop_index("idx_action_failures_delivery_id", table_name="action_failures")
    op.drop_table("action_failures")
    op.drop_index("idx_alerts_event_type_action", table_name="alerts")
    op.drop_index("idx_alerts_created_at", table_name="alerts")
    op.drop_index("idx_alerts_delivery_id", table_name="alerts")
    op.drop_table("alerts")
    op.drop_index("idx_rules_active_event_type", table_name="rules")
    op.drop_table("rules")
    op.drop_index("idx_events_event_type_action", table_name="events")
    op.drop_index("idx_events_received_at", table_name="events")
    op.drop_index("idx_events_delivery_id", table_name="events")
    op.drop_table("events")
