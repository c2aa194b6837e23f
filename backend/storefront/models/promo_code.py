"""Promo code model for user-entered discounts."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid


class PromoCodeType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"
    BUY_X_GET_Y = "buy_x_get_y"  # reserved, rejected at validation


class PromoCode(Base):
    """Promo code model.

    ``code`` is stored upper-cased; lookups are case-insensitive.
    ``current_usage_count`` only changes through the usage accountant.
    """

    __tablename__ = "promo_codes"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)

    promo_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(12, 2), nullable=True)
    min_order_amount = Column(Numeric(12, 2), nullable=True)

    max_total_usage = Column(Integer, nullable=True)
    max_usage_per_user = Column(Integer, nullable=True)
    current_usage_count = Column(Integer, nullable=False, default=0)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    apply_to_shipping = Column(Boolean, nullable=False, default=False)
    stackable_with_events = Column(Boolean, nullable=False, default=True)
    customer_tier = Column(String(50), nullable=True)
    category_id = Column(UUIDType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
