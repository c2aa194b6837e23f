"""Promotion event API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.core.cache import Cache, get_cache
from storefront.core.database import get_db
from storefront.core.exceptions import NotFoundError, PromotionValidationError
from storefront.models.promotion_event import EventStatus, PromotionEvent
from storefront.schemas.promotion_event import (
    PromotionEventCreate,
    PromotionEventDetailResponse,
    PromotionEventResponse,
)
from storefront.services.promotion_event_service import PromotionEventService

router = APIRouter()


@router.post(
    "/",
    response_model=PromotionEventResponse,
    status_code=201,
    summary="Create promotion event",
    responses={
        400: {"description": "Invalid dates, rule targets or products"},
        422: {"description": "Validation error"},
    },
)
async def create_event(
    data: PromotionEventCreate,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PromotionEvent:
    """Create a promotion event in Draft. Dates are Nepal civil time."""
    service = PromotionEventService(db, cache)
    try:
        return service.create_event(data)
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/",
    response_model=list[PromotionEventResponse],
    summary="List promotion events",
)
async def list_events(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: EventStatus | None = None,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> list[PromotionEvent]:
    return PromotionEventService(db, cache).list_events(skip=skip, limit=limit, status=status)


@router.get(
    "/{event_id}",
    response_model=PromotionEventDetailResponse,
    summary="Get promotion event",
    responses={404: {"description": "Promotion event not found"}},
)
async def get_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PromotionEventDetailResponse:
    """Get an event with its rules, linked products and window status."""
    service = PromotionEventService(db, cache)
    try:
        return service.get_detail(event_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post(
    "/{event_id}/activate",
    response_model=PromotionEventResponse,
    summary="Activate promotion event",
    responses={
        400: {"description": "Event cannot be activated in its current state"},
        404: {"description": "Promotion event not found"},
    },
)
async def activate_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PromotionEvent:
    service = PromotionEventService(db, cache)
    try:
        return service.activate(event_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post(
    "/{event_id}/pause",
    response_model=PromotionEventResponse,
    summary="Pause promotion event",
    responses={
        400: {"description": "Event is not active"},
        404: {"description": "Promotion event not found"},
    },
)
async def pause_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PromotionEvent:
    service = PromotionEventService(db, cache)
    try:
        return service.pause(event_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.delete(
    "/{event_id}",
    status_code=204,
    summary="Delete promotion event",
    responses={404: {"description": "Promotion event not found"}},
)
async def delete_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> None:
    """Soft delete an event. Recorded usage is kept."""
    service = PromotionEventService(db, cache)
    try:
        service.delete(event_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.post(
    "/{event_id}/restore",
    response_model=PromotionEventResponse,
    summary="Restore deleted promotion event",
    responses={
        400: {"description": "Promotion event is not deleted"},
        404: {"description": "Promotion event not found"},
    },
)
async def restore_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> PromotionEvent:
    service = PromotionEventService(db, cache)
    try:
        return service.restore(event_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except PromotionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
