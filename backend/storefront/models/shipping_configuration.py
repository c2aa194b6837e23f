"""Shipping configuration model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid, utc_now


class ShippingConfiguration(Base):
    """Tiered shipping costs, free-shipping rules and surcharges.

    A zero ``free_shipping_threshold`` or ``max_order_amount_for_shipping``
    disables that rule.
    """

    __tablename__ = "shipping_configurations"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    low_order_threshold = Column(Numeric(12, 2), nullable=False, default=0)
    low_order_shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    high_order_shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    free_shipping_threshold = Column(Numeric(12, 2), nullable=False, default=0)

    is_free_shipping_active = Column(Boolean, nullable=False, default=False)
    free_shipping_start_date = Column(DateTime(timezone=True), nullable=True)
    free_shipping_end_date = Column(DateTime(timezone=True), nullable=True)
    free_shipping_description = Column(String(255), nullable=True)

    weekend_surcharge = Column(Numeric(12, 2), nullable=False, default=0)
    holiday_surcharge = Column(Numeric(12, 2), nullable=False, default=0)
    rush_delivery_surcharge = Column(Numeric(12, 2), nullable=False, default=0)

    estimated_delivery_days = Column(Integer, nullable=False, default=3)
    max_delivery_distance_km = Column(Numeric(8, 2), nullable=False, default=0)
    require_location_validation = Column(Boolean, nullable=False, default=False)

    min_order_amount_for_shipping = Column(Numeric(12, 2), nullable=False, default=0)
    max_order_amount_for_shipping = Column(Numeric(12, 2), nullable=False, default=0)
    customer_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
