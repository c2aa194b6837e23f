"""create shipping configurations table

Revision ID: 4d5e6f7a8b9c
Revises: 3c4d5e6f7a8b
Create Date: 2026-10-19 09:45:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "4d5e6f7a8b9c"
down_revision = "3c4d5e6f7a8b"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "shipping_configurations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("low_order_threshold", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("low_order_shipping_cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("high_order_shipping_cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("free_shipping_threshold", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("is_free_shipping_active", sa.Boolean(), nullable=False),
        sa.Column("free_shipping_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("free_shipping_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("free_shipping_description", sa.String(length=255), nullable=True),
        sa.Column("weekend_surcharge", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("holiday_surcharge", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("rush_delivery_surcharge", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("estimated_delivery_days", sa.Integer(), nullable=False),
        sa.Column("max_delivery_distance_km", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("require_location_validation", sa.Boolean(), nullable=False),
        sa.Column(
            "min_order_amount_for_shipping", sa.Numeric(precision=12, scale=2), nullable=False
        ),
        sa.Column(
            "max_order_amount_for_shipping", sa.Numeric(precision=12, scale=2), nullable=False
        ),
        sa.Column("customer_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("shipping_configurations")
