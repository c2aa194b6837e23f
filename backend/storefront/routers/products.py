"""Product catalog and single-product pricing endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.core.cache import Cache, get_cache
from storefront.core.database import get_db
from storefront.core.exceptions import NotFoundError
from storefront.models.product import Product
from storefront.repositories.product_repository import ProductRepository
from storefront.schemas.pricing import PriceBreakdownResponse
from storefront.schemas.product import ProductCreate, ProductResponse
from storefront.services.pricing_service import PricingService

router = APIRouter()


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=201,
    summary="Create product",
    responses={422: {"description": "Validation error"}},
)
async def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
) -> Product:
    """Create a catalog product."""
    return ProductRepository(db).create(data)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product",
    responses={404: {"description": "Product not found"}},
)
async def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
) -> Product:
    product = ProductRepository(db).get_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get(
    "/{product_id}/price",
    response_model=PriceBreakdownResponse,
    summary="Resolve product price",
    responses={404: {"description": "Product not found"}},
)
async def get_product_price(
    product_id: UUID,
    quantity: int = Query(default=1, ge=1, le=100),
    user_id: UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PriceBreakdownResponse:
    """Price a product with its regular and best event discount applied.

    If promotions cannot be loaded the base price is returned with a warning.
    """
    service = PricingService(db, cache)
    try:
        breakdown = service.resolve_product_price(product_id, quantity, user_id=user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    return PriceBreakdownResponse.model_validate(breakdown, from_attributes=True)
