"""Order and order item models with frozen pricing."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class UsageStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ACCOUNTED = "accounted"
    PARTIAL = "partial"
    REVERSED = "reversed"
    REVERSAL_PENDING = "reversal_pending"


class Order(Base):
    __tablename__ = "orders"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    usage_status = Column(String(20), nullable=False, default=UsageStatus.NONE.value, index=True)

    original_subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    regular_discount_total = Column(Numeric(12, 2), nullable=False, default=0)
    event_discount_total = Column(Numeric(12, 2), nullable=False, default=0)
    promo_discount_total = Column(Numeric(12, 2), nullable=False, default=0)
    final_subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    applied_promo_code_id = Column(UUIDType, ForeignKey("promo_codes.id"), nullable=True)
    rush_delivery = Column(Boolean, nullable=False, default=False)
    delivery_latitude = Column(Numeric(9, 6), nullable=True)
    delivery_longitude = Column(Numeric(9, 6), nullable=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class OrderItem(Base):
    """Order line. Amounts are line totals frozen at placement."""

    __tablename__ = "order_items"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    order_id = Column(
        UUIDType, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    original_price = Column(Numeric(12, 2), nullable=False, default=0)
    regular_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    event_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    promo_code_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    reserved_price = Column(Numeric(12, 2), nullable=False, default=0)
    applied_event_id = Column(UUIDType, nullable=True)
    applied_promo_code_id = Column(UUIDType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
