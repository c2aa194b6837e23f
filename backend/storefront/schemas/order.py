from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.shipping import Coordinates


class PlaceOrderRequest(BaseModel):
    user_id: UUID
    promo_code: str | None = Field(default=None, max_length=50)
    customer_tier: str | None = None
    coordinates: Coordinates | None = None
    rush_delivery: bool = False
    max_acceptable_total: Decimal | None = Field(default=None, ge=0)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    quantity: int
    original_price: Decimal
    regular_discount_amount: Decimal
    event_discount_amount: Decimal
    promo_code_discount_amount: Decimal
    reserved_price: Decimal
    applied_event_id: UUID | None = None
    applied_promo_code_id: UUID | None = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    status: str
    usage_status: str
    original_subtotal: Decimal
    regular_discount_total: Decimal
    event_discount_total: Decimal
    promo_discount_total: Decimal
    final_subtotal: Decimal
    shipping_cost: Decimal
    shipping_discount: Decimal
    total_amount: Decimal
    applied_promo_code_id: UUID | None = None
    rush_delivery: bool
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime


class OrderDetailResponse(OrderResponse):
    items: list[OrderItemResponse] = Field(default_factory=list)


class UsageConfirmationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    usage_status: str
    recorded: int
    already_recorded: int


class CancellationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    status: str
    usage_status: str
    reversal_queued: bool
