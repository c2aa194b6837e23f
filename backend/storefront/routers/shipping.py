"""Shipping configuration and quote endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.core.cache import Cache, get_cache
from storefront.core.database import get_db
from storefront.core.exceptions import (
    NotFoundError,
    PromotionValidationError,
    UpstreamUnavailableError,
)
from storefront.models.shipping_configuration import ShippingConfiguration
from storefront.repositories.shipping_configuration_repository import (
    ShippingConfigurationRepository,
)
from storefront.schemas.shipping import (
    ShippingConfigurationCreate,
    ShippingConfigurationResponse,
    ShippingQuoteRequest,
    ShippingQuoteResponse,
)
from storefront.services.shipping_service import ShippingService

router = APIRouter()


@router.post(
    "/configurations",
    response_model=ShippingConfigurationResponse,
    status_code=201,
    summary="Create shipping configuration",
    responses={
        400: {"description": "Invalid free shipping dates"},
        422: {"description": "Validation error"},
    },
)
async def create_configuration(
    data: ShippingConfigurationCreate,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> ShippingConfiguration:
    service = ShippingService(db, cache)
    try:
        return service.create_configuration(data)
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/configurations",
    response_model=list[ShippingConfigurationResponse],
    summary="List shipping configurations",
)
async def list_configurations(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[ShippingConfiguration]:
    return ShippingConfigurationRepository(db).get_all(skip=skip, limit=limit)


@router.post(
    "/configurations/{config_id}/default",
    response_model=ShippingConfigurationResponse,
    summary="Make shipping configuration the default",
    responses={404: {"description": "Shipping configuration not found"}},
)
async def set_default_configuration(
    config_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> ShippingConfiguration:
    service = ShippingService(db, cache)
    try:
        return service.set_default(config_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.delete(
    "/configurations/{config_id}",
    status_code=204,
    summary="Delete shipping configuration",
    responses={404: {"description": "Shipping configuration not found"}},
)
async def delete_configuration(
    config_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> None:
    service = ShippingService(db, cache)
    try:
        service.delete_configuration(config_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post(
    "/quote",
    response_model=ShippingQuoteResponse,
    summary="Quote shipping",
    responses={503: {"description": "Shipping store unavailable"}},
)
async def quote_shipping(
    data: ShippingQuoteRequest,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> ShippingQuoteResponse:
    """Quote shipping for a subtotal using the active configuration."""
    service = ShippingService(db, cache)
    try:
        result = service.calculate_shipping(data.subtotal, data.coordinates, data.rush_delivery)
    except UpstreamUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from None
    return ShippingQuoteResponse.model_validate(result, from_attributes=True)
