"""Shipping configuration and quote schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ShippingConfigurationCreate(BaseModel):
    """Create payload. Free-shipping dates are civil (Nepal) strings."""

    name: str = Field(min_length=1, max_length=255)
    is_active: bool = True
    is_default: bool = False
    low_order_threshold: Decimal = Field(default=Decimal("0"), ge=0)
    low_order_shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    high_order_shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    free_shipping_threshold: Decimal = Field(default=Decimal("0"), ge=0)
    is_free_shipping_active: bool = False
    free_shipping_start_date: str | None = None
    free_shipping_end_date: str | None = None
    free_shipping_description: str | None = Field(default=None, max_length=255)
    weekend_surcharge: Decimal = Field(default=Decimal("0"), ge=0)
    holiday_surcharge: Decimal = Field(default=Decimal("0"), ge=0)
    rush_delivery_surcharge: Decimal = Field(default=Decimal("0"), ge=0)
    estimated_delivery_days: int = Field(default=3, ge=1)
    max_delivery_distance_km: Decimal = Field(default=Decimal("0"), ge=0)
    require_location_validation: bool = False
    min_order_amount_for_shipping: Decimal = Field(default=Decimal("0"), ge=0)
    max_order_amount_for_shipping: Decimal = Field(default=Decimal("0"), ge=0)
    customer_message: str | None = None

    @model_validator(mode="after")
    def validate_order_band(self) -> Self:
        if (
            self.max_order_amount_for_shipping > 0
            and self.max_order_amount_for_shipping < self.min_order_amount_for_shipping
        ):
            raise ValueError("max_order_amount_for_shipping must not be below the minimum")
        return self


class ShippingConfigurationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    is_active: bool
    is_default: bool
    low_order_threshold: Decimal
    low_order_shipping_cost: Decimal
    high_order_shipping_cost: Decimal
    free_shipping_threshold: Decimal
    is_free_shipping_active: bool
    free_shipping_start_date: datetime | None = None
    free_shipping_end_date: datetime | None = None
    free_shipping_description: str | None = None
    weekend_surcharge: Decimal
    holiday_surcharge: Decimal
    rush_delivery_surcharge: Decimal
    estimated_delivery_days: int
    max_delivery_distance_km: Decimal
    require_location_validation: bool
    min_order_amount_for_shipping: Decimal
    max_order_amount_for_shipping: Decimal
    customer_message: str | None = None
    created_at: datetime


class ShippingConfigSnapshot(BaseModel):
    """Cached copy of the active shipping configuration."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    low_order_threshold: Decimal = Decimal("0")
    low_order_shipping_cost: Decimal = Decimal("0")
    high_order_shipping_cost: Decimal = Decimal("0")
    free_shipping_threshold: Decimal = Decimal("0")
    is_free_shipping_active: bool = False
    free_shipping_start_date: datetime | None = None
    free_shipping_end_date: datetime | None = None
    free_shipping_description: str | None = None
    weekend_surcharge: Decimal = Decimal("0")
    holiday_surcharge: Decimal = Decimal("0")
    rush_delivery_surcharge: Decimal = Decimal("0")
    estimated_delivery_days: int = 3
    max_delivery_distance_km: Decimal = Decimal("0")
    require_location_validation: bool = False
    min_order_amount_for_shipping: Decimal = Decimal("0")
    max_order_amount_for_shipping: Decimal = Decimal("0")
    customer_message: str | None = None


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ShippingQuoteRequest(BaseModel):
    subtotal: Decimal = Field(ge=0)
    coordinates: Coordinates | None = None
    rush_delivery: bool = False


class AppliedSurchargeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    amount: Decimal


class ShippingQuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_available: bool
    shipping_cost: Decimal
    base_cost: Decimal
    is_free_shipping: bool
    surcharges: list[AppliedSurchargeResponse] = Field(default_factory=list)
    applied_promotions: list[str] = Field(default_factory=list)
    estimated_delivery_days: int | None = None
    delivery_estimate: str | None = None
    shipping_reason: str | None = None
    customer_message: str | None = None
    configuration_id: UUID | None = None
    distance_km: float | None = None
