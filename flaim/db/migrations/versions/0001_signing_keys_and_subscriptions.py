"""Create signing_keys and subscriptions.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ACTIVE_ONLY = sa.text("status = 'active'")


def upgrade() -> None:
    op.create_table(
        "signing_keys",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column("algorithm", sa.String(10), nullable=False, server_default="HS256"),
        sa.Column("secret_encrypted", sa.Text(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "uq_signing_keys_single_active",
        "signing_keys",
        ["status"],
        unique=True,
        sqlite_where=_ACTIVE_ONLY,
        postgresql_where=_ACTIVE_ONLY,
    )

    op.create_table(
        "subscriptions",
        sa.Column("subscriber_id", sa.String(255), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("plan_id", sa.String(255), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_subscriptions_last_updated", "subscriptions", ["last_updated"]
    )


def downgrade() -> None:
    op.drop_index("ix_subscriptions_last_updated", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("uq_signing_keys_single_active", table_name="signing_keys")
    op.drop_table("signing_keys")
