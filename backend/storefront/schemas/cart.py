from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CartItemCreate(BaseModel):
    user_id: UUID
    product_id: UUID
    quantity: int = Field(default=1, ge=1, le=100)


class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=1, le=100)


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    product_id: UUID
    quantity: int
    original_price: Decimal
    regular_discount_amount: Decimal
    event_discount_amount: Decimal
    promo_code_discount_amount: Decimal
    reserved_price: Decimal
    applied_event_id: UUID | None = None
    applied_promo_code_id: UUID | None = None
    priced_at: datetime
    expires_at: datetime


class ApplyCartPromoRequest(BaseModel):
    code: str = Field(max_length=50)
    customer_tier: str | None = None
