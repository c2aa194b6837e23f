"""create promotion user usages table

Revision ID: 6f7a8b9c0d1e
Revises: 5e6f7a8b9c0d
Create Date: 2026-10-19 10:30:00.000000

"""

import uuid

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "6f7a8b9c0d1e"
down_revision = "5e6f7a8b9c0d"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "promotion_user_usages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("promotion_kind", sa.String(length=20), nullable=False),
        sa.Column("promotion_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("use_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "promotion_kind",
            "promotion_id",
            "user_id",
            name="uq_promotion_user_usages_promotion_user",
        ),
    )

    # Seed counters from the live ledger rows already recorded.
    for kind, table, column in (
        ("event", "event_usages", "event_id"),
        ("promo_code", "promo_code_usages", "promo_code_id"),
    ):
        rows = (
            op.get_bind()
            .execute(
                sa.text(
                    f"SELECT {column}, user_id, COUNT(*) FROM {table} "
                    f"WHERE is_voided = :voided GROUP BY {column}, user_id"
                ),
                {"voided": False},
            )
            .fetchall()
        )
        if rows:
            op.bulk_insert(
                sa.table(
                    "promotion_user_usages",
                    sa.column("id", sa.String),
                    sa.column("promotion_kind", sa.String),
                    sa.column("promotion_id", sa.String),
                    sa.column("user_id", sa.String),
                    sa.column("use_count", sa.Integer),
                ),
                [
                    {
                        "id": str(uuid.uuid4()),
                        "promotion_kind": kind,
                        "promotion_id": promotion_id,
                        "user_id": user_id,
                        "use_count": count,
                    }
                    for promotion_id, user_id, count in rows
                ],
            )


def downgrade() -> None:
    op.drop_table("promotion_user_usages")
