"""Cart line model with a time-limited price reservation."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, func

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid


class CartItem(Base):
    """A product reserved in a user's cart.

    Amounts are line totals (unit amount times quantity) captured at
    ``priced_at``. The reservation lapses at ``expires_at``.
    """

    __tablename__ = "cart_items"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)

    original_price = Column(Numeric(12, 2), nullable=False, default=0)
    regular_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    event_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    promo_code_discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    reserved_price = Column(Numeric(12, 2), nullable=False, default=0)
    applied_event_id = Column(UUIDType, nullable=True)
    applied_promo_code_id = Column(UUIDType, nullable=True)

    priced_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
