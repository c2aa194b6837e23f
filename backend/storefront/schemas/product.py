from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProductCreate(BaseModel):
    name: str = Field(max_length=255)
    market_price: Decimal = Field(ge=0)
    discount_price: Decimal | None = Field(default=None, ge=0)
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    stock_quantity: int = Field(default=0, ge=0)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    market_price: Decimal
    discount_price: Decimal | None = None
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    stock_quantity: int
    reserved_stock: int
    created_at: datetime
