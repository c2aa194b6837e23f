"""Promo code API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.exceptions import NotFoundError, PromotionValidationError
from storefront.models.promo_code import PromoCode
from storefront.models.usage import PromoCodeUsage
from storefront.repositories.promo_code_repository import PromoCodeRepository
from storefront.repositories.usage_repository import UsageRepository
from storefront.schemas.promo_code import (
    PromoApplicationResponse,
    PromoCodeCreate,
    PromoCodeResponse,
    PromoCodeUsageResponse,
    PromoCodeUsageSummary,
    ValidatePromoCodeRequest,
)
from storefront.services.promo_code_service import OrderContext, PromoCodeService, PromoLine

router = APIRouter()


@router.post(
    "/",
    response_model=PromoCodeResponse,
    status_code=201,
    summary="Create promo code",
    responses={
        400: {"description": "Invalid dates"},
        409: {"description": "Promo code already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_promo_code(
    data: PromoCodeCreate,
    db: Session = Depends(get_db),
) -> PromoCode:
    """Create a promo code. Codes are stored upper-case; dates are Nepal civil time."""
    if PromoCodeRepository(db).get_by_code(data.code, include_deleted=True):
        raise HTTPException(status_code=409, detail="Promo code already exists")
    service = PromoCodeService(db)
    try:
        return service.create_promo_code(data)
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/",
    response_model=list[PromoCodeResponse],
    summary="List promo codes",
)
async def list_promo_codes(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    is_active: bool | None = None,
    db: Session = Depends(get_db),
) -> list[PromoCode]:
    return PromoCodeRepository(db).get_all(skip=skip, limit=limit, is_active=is_active)


@router.post(
    "/validate",
    response_model=PromoApplicationResponse,
    summary="Validate promo code",
    responses={400: {"description": "No code supplied"}},
)
async def validate_promo_code(
    data: ValidatePromoCodeRequest,
    db: Session = Depends(get_db),
) -> PromoApplicationResponse:
    """Check a code against an order without recording usage.

    An ineligible code is a 200 response with ``is_valid`` false and the
    reasons listed.
    """
    context = OrderContext(
        lines=[
            PromoLine(
                line_id=line.line_id,
                product_id=line.product_id,
                amount=line.amount,
                category_id=line.category_id,
                has_event_discount=line.has_event_discount,
            )
            for line in data.lines
        ],
        shipping_cost=data.shipping_cost,
        customer_tier=data.customer_tier,
    )
    service = PromoCodeService(db)
    try:
        result = service.validate_and_apply(data.code, data.user_id, context)
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return PromoApplicationResponse.model_validate(result, from_attributes=True)


@router.get(
    "/{promo_code_id}",
    response_model=PromoCodeResponse,
    summary="Get promo code",
    responses={404: {"description": "Promo code not found"}},
)
async def get_promo_code(
    promo_code_id: UUID,
    db: Session = Depends(get_db),
) -> PromoCode:
    promo_code = PromoCodeRepository(db).get_by_id(promo_code_id)
    if not promo_code or promo_code.is_deleted:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return promo_code


@router.post(
    "/{promo_code_id}/activate",
    response_model=PromoCodeResponse,
    summary="Activate promo code",
    responses={404: {"description": "Promo code not found"}},
)
async def activate_promo_code(
    promo_code_id: UUID,
    db: Session = Depends(get_db),
) -> PromoCode:
    try:
        return PromoCodeService(db).activate(promo_code_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post(
    "/{promo_code_id}/deactivate",
    response_model=PromoCodeResponse,
    summary="Deactivate promo code",
    responses={404: {"description": "Promo code not found"}},
)
async def deactivate_promo_code(
    promo_code_id: UUID,
    db: Session = Depends(get_db),
) -> PromoCode:
    try:
        return PromoCodeService(db).deactivate(promo_code_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.delete(
    "/{promo_code_id}",
    status_code=204,
    summary="Delete promo code",
    responses={404: {"description": "Promo code not found"}},
)
async def delete_promo_code(
    promo_code_id: UUID,
    db: Session = Depends(get_db),
) -> None:
    try:
        PromoCodeService(db).delete(promo_code_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.get(
    "/{promo_code_id}/usage",
    response_model=PromoCodeUsageSummary,
    summary="Get promo code usage summary",
    responses={404: {"description": "Promo code not found"}},
)
async def get_promo_code_usage(
    promo_code_id: UUID,
    user_id: UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> PromoCodeUsageSummary:
    """Total and remaining uses, optionally for one user."""
    try:
        return PromoCodeService(db).get_usage_summary(promo_code_id, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.get(
    "/{promo_code_id}/usages",
    response_model=list[PromoCodeUsageResponse],
    summary="List promo code usage records",
    responses={404: {"description": "Promo code not found"}},
)
async def list_promo_code_usages(
    promo_code_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[PromoCodeUsage]:
    if not PromoCodeRepository(db).get_by_id(promo_code_id):
        raise HTTPException(status_code=404, detail="Promo code not found")
    return UsageRepository(db).get_promo_usages(promo_code_id, skip=skip, limit=limit)
