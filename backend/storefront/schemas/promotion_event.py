"""Promotion event schemas, including the cached active-event snapshot."""

from datetime import datetime, time
from decimal import Decimal
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront.models.promotion_event import PromotionType, RuleTargetType
from storefront.services.nepal_time import format_civil


class EventRuleCreate(BaseModel):
    target_type: RuleTargetType
    target_value: str | None = None
    promotion_type: PromotionType | None = None
    discount_value: Decimal | None = Field(default=None, ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    min_order_value: Decimal | None = Field(default=None, ge=0)
    priority: int = 0

    @model_validator(mode="after")
    def validate_target_value(self) -> Self:
        """Non-global rules need at least one target id."""
        if self.target_type != RuleTargetType.GLOBAL and not (self.target_value or "").strip():
            msg = f"target_value is required for target_type '{self.target_type.value}'"
            raise ValueError(msg)
        return self


class EventProductCreate(BaseModel):
    product_id: UUID
    specific_discount: Decimal | None = Field(default=None, ge=0)


class PromotionEventCreate(BaseModel):
    """Create payload. Dates are civil (Nepal) strings without offset."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    tagline: str | None = Field(default=None, max_length=255)
    promotion_type: PromotionType
    discount_value: Decimal = Field(gt=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    min_order_value: Decimal | None = Field(default=None, ge=0)
    start_date: str
    end_date: str
    active_slot_start: time | None = None
    active_slot_end: time | None = None
    priority: int = 0
    max_usage_count: int | None = Field(default=None, ge=1)
    max_usage_per_user: int | None = Field(default=None, ge=1)
    rules: list[EventRuleCreate] = Field(default_factory=list)
    products: list[EventProductCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_percentage(self) -> Self:
        if self.promotion_type == PromotionType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self

    @model_validator(mode="after")
    def validate_time_slot(self) -> Self:
        if (self.active_slot_start is None) != (self.active_slot_end is None):
            raise ValueError("active_slot_start and active_slot_end must be set together")
        return self


class EventRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    target_type: str
    target_value: str | None = None
    promotion_type: str | None = None
    discount_value: Decimal | None = None
    max_discount_amount: Decimal | None = None
    min_order_value: Decimal | None = None
    priority: int


class EventProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    product_id: UUID
    specific_discount: Decimal | None = None


class PromotionEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    tagline: str | None = None
    promotion_type: str
    discount_value: Decimal
    max_discount_amount: Decimal | None = None
    min_order_value: Decimal | None = None
    start_date: datetime
    end_date: datetime
    start_date_npt: str | None = None
    end_date_npt: str | None = None
    active_slot_start: time | None = None
    active_slot_end: time | None = None
    priority: int
    max_usage_count: int | None = None
    max_usage_per_user: int | None = None
    current_usage_count: int
    status: str
    is_active: bool
    created_at: datetime

    @model_validator(mode="after")
    def fill_civil_dates(self) -> Self:
        self.start_date_npt = format_civil(self.start_date)
        self.end_date_npt = format_civil(self.end_date)
        return self


class PromotionEventDetailResponse(PromotionEventResponse):
    rules: list[EventRuleResponse] = Field(default_factory=list)
    products: list[EventProductResponse] = Field(default_factory=list)
    window_status: str | None = None


class EventRuleSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_type: str
    target_value: str | None = None
    promotion_type: str | None = None
    discount_value: Decimal | None = None
    max_discount_amount: Decimal | None = None
    min_order_value: Decimal | None = None
    priority: int = 0
    created_at: datetime | None = None


class EventProductSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    specific_discount: Decimal | None = None


class ActiveEventSnapshot(BaseModel):
    """Read-only copy of an activated event and its targeting.

    Usage counters are not included. Limits are always read from the database.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    promotion_type: str
    discount_value: Decimal
    max_discount_amount: Decimal | None = None
    min_order_value: Decimal | None = None
    start_date: datetime
    end_date: datetime
    active_slot_start: time | None = None
    active_slot_end: time | None = None
    priority: int = 0
    created_at: datetime | None = None
    rules: list[EventRuleSnapshot] = Field(default_factory=list)
    products: list[EventProductSnapshot] = Field(default_factory=list)


class ActiveEventsSnapshot(BaseModel):
    events: list[ActiveEventSnapshot] = Field(default_factory=list)
    loaded_at: datetime
