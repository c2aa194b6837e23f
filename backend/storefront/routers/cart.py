"""Cart API endpoints: lines, promo codes and price previews."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.core.cache import Cache, get_cache
from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.exceptions import NotFoundError, PromotionValidationError
from storefront.models.cart_item import CartItem
from storefront.schemas.cart import (
    ApplyCartPromoRequest,
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
)
from storefront.schemas.pricing import CartPreviewRequest, CartPricingResponse
from storefront.schemas.promo_code import PromoApplicationResponse
from storefront.services.cart_service import CartService
from storefront.services.pricing_service import PricingService

router = APIRouter()


@router.get(
    "/{user_id}/items",
    response_model=list[CartItemResponse],
    summary="List cart items",
)
async def list_cart_items(
    user_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> list[CartItem]:
    return CartService(db, cache).list_items(user_id)


@router.post(
    "/items",
    response_model=CartItemResponse,
    status_code=201,
    summary="Add item to cart",
    responses={
        400: {"description": "Not enough stock"},
        404: {"description": "Product not found"},
    },
)
async def add_cart_item(
    data: CartItemCreate,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> CartItem:
    """Add a product to the cart and reserve its current price."""
    service = CartService(db, cache)
    try:
        return service.add_item(data.user_id, data.product_id, data.quantity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.patch(
    "/items/{item_id}",
    response_model=CartItemResponse,
    summary="Update cart item quantity",
    responses={
        400: {"description": "Not enough stock"},
        404: {"description": "Cart item not found"},
    },
)
async def update_cart_item(
    item_id: UUID,
    data: CartItemUpdate,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> CartItem:
    service = CartService(db, cache)
    try:
        return service.update_quantity(item_id, data.quantity)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.delete(
    "/items/{item_id}",
    status_code=204,
    summary="Remove cart item",
    responses={404: {"description": "Cart item not found"}},
)
async def remove_cart_item(
    item_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> None:
    service = CartService(db, cache)
    try:
        service.remove_item(item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post(
    "/{user_id}/promo_code",
    response_model=PromoApplicationResponse,
    summary="Apply promo code to cart",
    responses={400: {"description": "Cart is empty or no code supplied"}},
)
async def apply_cart_promo_code(
    user_id: UUID,
    data: ApplyCartPromoRequest,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PromoApplicationResponse:
    """Apply a code to the cart. Ineligible codes return the reasons."""
    service = CartService(db, cache)
    try:
        result = service.apply_promo_code(user_id, data.code, data.customer_tier)
    except (PromotionValidationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return PromoApplicationResponse.model_validate(result, from_attributes=True)


@router.delete(
    "/{user_id}/promo_code",
    response_model=CartPricingResponse,
    summary="Remove promo code from cart",
)
async def remove_cart_promo_code(
    user_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> CartPricingResponse:
    pricing = CartService(db, cache).remove_promo_code(user_id)
    return CartPricingResponse.model_validate(pricing, from_attributes=True)


@router.post(
    "/{user_id}/preview",
    response_model=CartPricingResponse,
    summary="Preview cart pricing",
    responses={400: {"description": "No code supplied"}},
)
async def preview_cart(
    user_id: UUID,
    data: CartPreviewRequest,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> CartPricingResponse:
    """Price the cart without changing it.

    Promotions that cannot be resolved within the preview time budget are
    left out and reported in ``warnings``.
    """
    service = PricingService(db, cache)
    try:
        pricing = service.price_cart(
            user_id,
            promo_code=data.promo_code,
            customer_tier=data.customer_tier,
            coordinates=data.coordinates,
            rush_requested=data.rush_delivery,
            max_acceptable_total=data.max_acceptable_total,
            deadline_seconds=settings.PRICING_PREVIEW_TIMEOUT_SECONDS,
        )
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return CartPricingResponse.model_validate(pricing, from_attributes=True)
