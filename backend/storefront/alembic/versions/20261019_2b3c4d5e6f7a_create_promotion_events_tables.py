"""create promotion events tables

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-19 09:15:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "2b3c4d5e6f7a"
down_revision = "1a2b3c4d5e6f"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "promotion_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tagline", sa.String(length=255), nullable=True),
        sa.Column("promotion_type", sa.String(length=20), nullable=False),
        sa.Column("discount_value", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("max_discount_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("min_order_value", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("active_slot_start", sa.Time(), nullable=True),
        sa.Column("active_slot_end", sa.Time(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("max_usage_count", sa.Integer(), nullable=True),
        sa.Column("max_usage_per_user", sa.Integer(), nullable=True),
        sa.Column("current_usage_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
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
    op.create_index(
        op.f("ix_promotion_events_start_date"), "promotion_events", ["start_date"], unique=False
    )
    op.create_index(
        op.f("ix_promotion_events_end_date"), "promotion_events", ["end_date"], unique=False
    )

    op.create_table(
        "event_rules",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("target_type", sa.String(length=20), nullable=False),
        sa.Column("target_value", sa.Text(), nullable=True),
        sa.Column("promotion_type", sa.String(length=20), nullable=True),
        sa.Column("discount_value", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("max_discount_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("min_order_value", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["event_id"], ["promotion_events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_event_rules_event_id"), "event_rules", ["event_id"], unique=False)

    op.create_table(
        "event_products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("specific_discount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["event_id"], ["promotion_events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "product_id", name="uq_event_products_event_product"),
    )
    op.create_index(
        op.f("ix_event_products_event_id"), "event_products", ["event_id"], unique=False
    )
    op.create_index(
        op.f("ix_event_products_product_id"), "event_products", ["product_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_event_products_product_id"), table_name="event_products")
    op.drop_index(op.f("ix_event_products_event_id"), table_name="event_products")
    op.drop_table("event_products")
    op.drop_index(op.f("ix_event_rules_event_id"), table_name="event_rules")
    op.drop_table("event_rules")
    op.drop_index(op.f("ix_promotion_events_end_date"), table_name="promotion_events")
    op.drop_index(op.f("ix_promotion_events_start_date"), table_name="promotion_events")
    op.drop_table("promotion_events")
