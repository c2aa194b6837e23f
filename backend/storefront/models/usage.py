"""Usage ledger for promotion events and promo codes.

At most one row exists per (promotion, order). Reversal marks the row void
instead of deleting it, so a repeated confirmation stays a no-op. Per-user
use counts live beside the ledger in promotion_user_usages.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid


class EventUsage(Base):
    __tablename__ = "event_usages"
    __table_args__ = (UniqueConstraint("event_id", "order_id", name="uq_event_usages_event_order"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(UUIDType, ForeignKey("promotion_events.id"), nullable=False, index=True)
    user_id = Column(UUIDType, nullable=False, index=True)
    order_id = Column(UUIDType, nullable=False, index=True)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    is_voided = Column(Boolean, nullable=False, default=False)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now())


class PromoCodeUsage(Base):
    __tablename__ = "promo_code_usages"
    __table_args__ = (
        UniqueConstraint("promo_code_id", "order_id", name="uq_promo_code_usages_code_order"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    promo_code_id = Column(UUIDType, ForeignKey("promo_codes.id"), nullable=False, index=True)
    user_id = Column(UUIDType, nullable=False, index=True)
    order_id = Column(UUIDType, nullable=False, index=True)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    is_voided = Column(Boolean, nullable=False, default=False)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now())


class PromotionUserUsage(Base):
    """Live uses of one promotion by one user.

    Guards MaxUsagePerUser with a conditional UPDATE, the same way the
    promotion's own counter guards MaxTotalUsage.
    """

    __tablename__ = "promotion_user_usages"
    __table_args__ = (
        UniqueConstraint(
            "promotion_kind",
            "promotion_id",
            "user_id",
            name="uq_promotion_user_usages_promotion_user",
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    promotion_kind = Column(String(20), nullable=False)
    promotion_id = Column(UUIDType, nullable=False)
    user_id = Column(UUIDType, nullable=False)
    use_count = Column(Integer, nullable=False, default=0)
