"""entitlement and migration flag tables

Revision ID: 0001_initial
Revises:
Create Date: 2025-11-02 10:14:08.412907

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entitlement",
        sa.Column("identity", sa.String(length=64), nullable=False),
        sa.Column("billing_customer_id", sa.String(length=255), nullable=True),
        sa.Column("billing_subscription_id", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "none",
                "trialing",
                "active",
                "past_due",
                "canceled",
                "unpaid",
                name="entitlement_status",
                native_enum=False,
                length=32,
            ),
            nullable=False,
        ),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_legacy_grant", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("identity", name=op.f("pk_entitlement")),
    )
    op.create_index("ix_entitlement_status", "entitlement", ["status"], unique=False)
    op.create_index(
        "ix_entitlement_billing_subscription_id",
        "entitlement",
        ["billing_subscription_id"],
        unique=False,
    )

    op.create_table(
        "migration_flag",
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column(
            "state",
            sa.Enum(
                "absent",
                "in_progress",
                "completed",
                name="migration_flag_state",
                native_enum=False,
                length=32,
            ),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("affected_count", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("name", name=op.f("pk_migration_flag")),
    )


def downgrade() -> None:
    op.drop_table("migration_flag")
    op.drop_index("ix_entitlement_billing_subscription_id", table_name="entitlement")
    op.drop_index("ix_entitlement_status", table_name="entitlement")
    op.drop_table("entitlement")
