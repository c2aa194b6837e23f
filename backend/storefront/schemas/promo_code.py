"""Promo code schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront.models.promo_code import PromoCodeType
from storefront.services.nepal_time import format_civil


class PromoCodeCreate(BaseModel):
    """Create payload. Dates are civil (Nepal) strings without offset."""

    code: str = Field(min_length=1, max_length=50)
    description: str | None = None
    promo_type: PromoCodeType
    discount_value: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_total_usage: int | None = Field(default=None, ge=1)
    max_usage_per_user: int | None = Field(default=None, ge=1)
    start_date: str
    end_date: str
    is_active: bool = True
    apply_to_shipping: bool = False
    stackable_with_events: bool = True
    customer_tier: str | None = Field(default=None, max_length=50)
    category_id: UUID | None = None

    @model_validator(mode="after")
    def validate_discount_value(self) -> Self:
        """Validate the value fits the discount type."""
        if self.promo_type == PromoCodeType.PERCENTAGE and not (0 < self.discount_value <= 100):
            raise ValueError("Percentage discount must be between 0 and 100")
        if self.promo_type == PromoCodeType.FIXED_AMOUNT and self.discount_value <= 0:
            raise ValueError("Fixed discount amount must be greater than 0")
        return self


class PromoCodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    description: str | None = None
    promo_type: str
    discount_value: Decimal
    max_discount_amount: Decimal | None = None
    min_order_amount: Decimal | None = None
    max_total_usage: int | None = None
    max_usage_per_user: int | None = None
    current_usage_count: int
    start_date: datetime
    end_date: datetime
    start_date_npt: str | None = None
    end_date_npt: str | None = None
    is_active: bool
    apply_to_shipping: bool
    stackable_with_events: bool
    customer_tier: str | None = None
    category_id: UUID | None = None
    created_at: datetime

    @model_validator(mode="after")
    def fill_civil_dates(self) -> Self:
        self.start_date_npt = format_civil(self.start_date)
        self.end_date_npt = format_civil(self.end_date)
        return self


class PromoCodeUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    promo_code_id: UUID
    user_id: UUID
    order_id: UUID
    discount_amount: Decimal
    is_voided: bool
    used_at: datetime


class PromoCodeUsageSummary(BaseModel):
    """Usage figures for a promo code, optionally for one user."""

    code: str
    total_uses: int
    max_total_usage: int | None = None
    remaining_uses: int | None = None
    user_uses: int | None = None
    user_remaining_uses: int | None = None
    total_discount_given: Decimal


class PromoLineRequest(BaseModel):
    line_id: str
    product_id: UUID
    category_id: UUID | None = None
    amount: Decimal = Field(ge=0)
    has_event_discount: bool = False


class ValidatePromoCodeRequest(BaseModel):
    code: str
    user_id: UUID
    lines: list[PromoLineRequest] = Field(default_factory=list)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    customer_tier: str | None = None


class PromoLineDiscountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_id: str
    product_id: UUID
    discount_amount: Decimal
    reason: str | None = None


class PromoApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_valid: bool
    code: str
    promo_code_id: UUID | None = None
    promo_type: str | None = None
    formatted_discount: str | None = None
    item_discounts: list[PromoLineDiscountResponse] = Field(default_factory=list)
    item_discount_total: Decimal
    shipping_discount: Decimal
    total_discount: Decimal
    reasons: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
