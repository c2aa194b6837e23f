"""Order API endpoints: placement, usage confirmation and cancellation."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.core.cache import Cache, get_cache
from storefront.core.database import get_db
from storefront.core.exceptions import (
    CheckoutError,
    ConcurrencyConflictError,
    NotFoundError,
    PromotionValidationError,
)
from storefront.models.order import Order
from storefront.repositories.order_repository import OrderRepository
from storefront.schemas.order import (
    CancellationResponse,
    OrderDetailResponse,
    OrderItemResponse,
    OrderResponse,
    PlaceOrderRequest,
    UsageConfirmationResponse,
)
from storefront.services.order_service import OrderService
from storefront.tasks import enqueue_reverse_order_usage

logger = logging.getLogger(__name__)

router = APIRouter()


async def _enqueue_reversal_retry(order_id: str) -> None:
    """Enqueue a reversal retry. Failures are logged; the cron job picks it up."""
    try:
        await enqueue_reverse_order_usage(order_id)
    except Exception:
        logger.exception("Failed to enqueue usage reversal for order %s", order_id)


@router.post(
    "/",
    response_model=OrderResponse,
    status_code=201,
    summary="Place order",
    responses={
        400: {"description": "Cart cannot be checked out"},
        422: {"description": "Validation error"},
    },
)
async def place_order(
    data: PlaceOrderRequest,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> Order:
    """Place an order from the user's cart at freshly resolved prices."""
    service = OrderService(db, cache)
    try:
        return service.place_order(data)
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=e.reasons) from None
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
    summary="Get order",
    responses={404: {"description": "Order not found"}},
)
async def get_order(
    order_id: UUID,
    db: Session = Depends(get_db),
) -> OrderDetailResponse:
    repo = OrderRepository(db)
    order = repo.get_by_id(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    detail = OrderDetailResponse.model_validate(order)
    detail.items = [OrderItemResponse.model_validate(item) for item in repo.get_items(order_id)]
    return detail


@router.post(
    "/{order_id}/confirm",
    response_model=UsageConfirmationResponse,
    summary="Confirm order usage",
    responses={
        400: {"description": "Order was cancelled"},
        404: {"description": "Order or promotion not found"},
        409: {"description": "Promotion was exhausted"},
    },
)
async def confirm_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> UsageConfirmationResponse:
    """Record the order's promotion usage. Safe to retry."""
    service = OrderService(db, cache)
    try:
        result = service.confirm_order_usage(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ConcurrencyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return UsageConfirmationResponse.model_validate(result, from_attributes=True)


@router.post(
    "/{order_id}/cancel",
    response_model=CancellationResponse,
    summary="Cancel order",
    responses={404: {"description": "Order not found"}},
)
async def cancel_order(
    order_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> CancellationResponse:
    """Cancel an order. Usage reversal failures never block cancellation."""
    service = OrderService(db, cache)
    try:
        result = service.cancel_order(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    if result.reversal_queued:
        background_tasks.add_task(_enqueue_reversal_retry, str(order_id))
    return CancellationResponse.model_validate(result, from_attributes=True)
