"""Price breakdown and cart pricing response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.promo_code import PromoApplicationResponse
from storefront.schemas.shipping import Coordinates, ShippingQuoteResponse


class PriceBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    quantity: int
    unit_market_price: Decimal
    original_price: Decimal
    regular_discount: Decimal
    base_price: Decimal
    event_discount: Decimal
    promo_discount: Decimal
    final_price: Decimal
    applied_event_id: UUID | None = None
    applied_event_name: str | None = None
    applied_rule_id: UUID | None = None
    event_note: str | None = None
    applied_promo_code_id: UUID | None = None
    promo_note: str | None = None
    warnings: list[str] = Field(default_factory=list)


class CartLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cart_item_id: UUID
    pricing: PriceBreakdownResponse
    reserved_price: Decimal
    expires_at: datetime
    is_expired: bool
    in_stock: bool
    is_price_stable: bool


class CartPricingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    lines: list[CartLineResponse] = Field(default_factory=list)
    original_subtotal: Decimal
    regular_discount_total: Decimal
    event_discount_total: Decimal
    promo_discount_total: Decimal
    total_discounts: Decimal
    final_subtotal: Decimal
    shipping: ShippingQuoteResponse | None = None
    shipping_discount: Decimal
    grand_total: Decimal
    promo: PromoApplicationResponse | None = None
    can_checkout: bool
    is_price_stable: bool
    checkout_blockers: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CartPreviewRequest(BaseModel):
    promo_code: str | None = None
    customer_tier: str | None = None
    coordinates: Coordinates | None = None
    rush_delivery: bool = False
    max_acceptable_total: Decimal | None = Field(default=None, ge=0)
