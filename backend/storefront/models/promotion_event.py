"""Promotion events with their targeting rules and direct product links."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)

from storefront.core.database import Base
from storefront.models.shared import UUIDType, generate_uuid, utc_now


class PromotionType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class EventStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    EXPIRED = "expired"


class RuleTargetType(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    GLOBAL = "global"


class PromotionEvent(Base):
    """A time-bounded marketing discount.

    ``status`` and ``is_active`` must agree (Active and True) for the event
    to be eligible. The optional daily slot is evaluated in civil time.
    """

    __tablename__ = "promotion_events"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    tagline = Column(String(255), nullable=True)

    promotion_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False)
    max_discount_amount = Column(Numeric(12, 2), nullable=True)
    min_order_value = Column(Numeric(12, 2), nullable=True)

    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    active_slot_start = Column(Time, nullable=True)
    active_slot_end = Column(Time, nullable=True)

    priority = Column(Integer, nullable=False, default=0)
    max_usage_count = Column(Integer, nullable=True)
    max_usage_per_user = Column(Integer, nullable=True)
    current_usage_count = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=EventStatus.DRAFT.value)
    is_active = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class EventRule(Base):
    """A targeting rule with its own optional discount terms.

    Unset terms fall back to the owning event's terms.
    """

    __tablename__ = "event_rules"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(
        UUIDType,
        ForeignKey("promotion_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_type = Column(String(20), nullable=False)
    target_value = Column(Text, nullable=True)  # comma-separated ids

    promotion_type = Column(String(20), nullable=True)
    discount_value = Column(Numeric(12, 2), nullable=True)
    max_discount_amount = Column(Numeric(12, 2), nullable=True)
    min_order_value = Column(Numeric(12, 2), nullable=True)
    priority = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())


class EventProduct(Base):
    """Direct association of a product with an event, bypassing rules."""

    __tablename__ = "event_products"
    __table_args__ = (
        UniqueConstraint("event_id", "product_id", name="uq_event_products_event_product"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    event_id = Column(
        UUIDType,
        ForeignKey("promotion_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = Column(UUIDType, ForeignKey("products.id"), nullable=False, index=True)
    specific_discount = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
