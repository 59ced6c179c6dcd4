"""create subscription table

Revision ID: 202510190001
Revises:
Create Date: 2025-10-19 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202510190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "subscription",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("service_name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("price >= 0", name="ck_subscription_price_nonnegative"),
        sa.CheckConstraint("end_date IS NULL OR end_date >= start_date", name="ck_subscription_end_after_start"),
    )
    op.create_index("ix_subscription_owner", "subscription", ["owner_id"])
    op.create_index("ix_subscription_owner_service", "subscription", ["owner_id", "service_name"])


def downgrade() -> None:
    op.drop_index("ix_subscription_owner_service", table_name="subscription")
    op.drop_index("ix_subscription_owner", table_name="subscription")
    op.drop_table("subscription")
