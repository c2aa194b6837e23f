"""Product model: the catalog fields the pricing engine reads."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, func

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid


class Product(Base):
    __tablename__ = "products"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    market_price = Column(Numeric(12, 2), nullable=False)
    discount_price = Column(Numeric(12, 2), nullable=True)
    category_id = Column(UUIDType, nullable=True, index=True)
    subcategory_id = Column(UUIDType, nullable=True, index=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    reserved_stock = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
