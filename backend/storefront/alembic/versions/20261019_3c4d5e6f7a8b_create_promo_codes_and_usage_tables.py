"""create promo codes and usage tables

Revision ID: 3c4d5e6f7a8b
Revises: 2b3c4d5e6f7a
Create Date: 2026-10-19 09:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3c4d5e6f7a8b"
down_revision = "2b3c4d5e6f7a"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "promo_codes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("promo_type", sa.String(length=20), nullable=False),
        sa.Column("discount_value", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("max_discount_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("min_order_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("max_total_usage", sa.Integer(), nullable=True),
        sa.Column("max_usage_per_user", sa.Integer(), nullable=True),
        sa.Column("current_usage_count", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("apply_to_shipping", sa.Boolean(), nullable=False),
        sa.Column("stackable_with_events", sa.Boolean(), nullable=False),
        sa.Column("customer_tier", sa.String(length=50), nullable=True),
        sa.Column("category_id", sa.String(length=36), nullable=True),
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
    op.create_index(op.f("ix_promo_codes_code"), "promo_codes", ["code"], unique=True)

    op.create_table(
        "event_usages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("discount_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("is_voided", sa.Boolean(), nullable=False),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "used_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["event_id"], ["promotion_events.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "order_id", name="uq_event_usages_event_order"),
    )
    op.create_index(op.f("ix_event_usages_event_id"), "event_usages", ["event_id"], unique=False)
    op.create_index(op.f("ix_event_usages_user_id"), "event_usages", ["user_id"], unique=False)
    op.create_index(op.f("ix_event_usages_order_id"), "event_usages", ["order_id"], unique=False)

    op.create_table(
        "promo_code_usages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("promo_code_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("discount_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("is_voided", sa.Boolean(), nullable=False),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "used_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["promo_code_id"], ["promo_codes.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("promo_code_id", "order_id", name="uq_promo_code_usages_code_order"),
    )
    op.create_index(
        op.f("ix_promo_code_usages_promo_code_id"),
        "promo_code_usages",
        ["promo_code_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_promo_code_usages_user_id"), "promo_code_usages", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_promo_code_usages_order_id"), "promo_code_usages", ["order_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_promo_code_usages_order_id"), table_name="promo_code_usages")
    op.drop_index(op.f("ix_promo_code_usages_user_id"), table_name="promo_code_usages")
    op.drop_index(op.f("ix_promo_code_usages_promo_code_id"), table_name="promo_code_usages")
    op.drop_table("promo_code_usages")
    op.drop_index(op.f("ix_event_usages_order_id"), table_name="event_usages")
    op.drop_index(op.f("ix_event_usages_user_id"), table_name="event_usages")
    op.drop_index(op.f("ix_event_usages_event_id"), table_name="event_usages")
    op.drop_table("event_usages")
    op.drop_index(op.f("ix_promo_codes_code"), table_name="promo_codes")
    op.drop_table("promo_codes")
