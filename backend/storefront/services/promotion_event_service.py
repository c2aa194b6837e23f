"""Promotion event lifecycle management."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.core.cache import Cache
from storefront.core.exceptions import NotFoundError, PromotionValidationError
from storefront.models.promotion_event import EventStatus, PromotionEvent
from storefront.models.shared import ensure_utc
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.promotion_event_repository import PromotionEventRepository
from storefront.schemas.promotion_event import (
    EventProductResponse,
    EventRuleResponse,
    PromotionEventCreate,
    PromotionEventDetailResponse,
)
from storefront.services.event_eligibility import ACTIVE_EVENTS_CACHE_KEY, parse_target_ids
from storefront.services.nepal_time import civil_to_utc, window_status

logger = logging.getLogger(__name__)

ACTIVATABLE_STATUSES = {EventStatus.DRAFT.value, EventStatus.PAUSED.value}


class PromotionEventService:
    """Service for creating events and moving them through their lifecycle.

    Every change drops the cached active-event snapshot so the next pricing
    call sees it.
    """

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.cache = cache
        self.event_repo = PromotionEventRepository(db)
        self.product_repo = ProductRepository(db)

    def _invalidate(self) -> None:
        self.cache.invalidate(ACTIVE_EVENTS_CACHE_KEY)

    def get_event(self, event_id: UUID) -> PromotionEvent:
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError(f"Promotion event {event_id} not found")
        return event

    def list_events(
        self, skip: int = 0, limit: int = 100, status: EventStatus | None = None
    ) -> list[PromotionEvent]:
        return self.event_repo.get_all(skip=skip, limit=limit, status=status)

    def create_event(self, data: PromotionEventCreate) -> PromotionEvent:
        """Create a Draft event from civil (Nepal) dates.

        Raises:
            PromotionValidationError: If the dates are malformed or out of
                order, a rule target is not a list of ids, or a linked product
                does not exist.
        """
        start_date = civil_to_utc(data.start_date)
        end_date = civil_to_utc(data.end_date)
        if end_date <= start_date:
            raise PromotionValidationError("End date must be after start date")

        for rule in data.rules:
            try:
                parse_target_ids(rule.target_value)
            except ValueError:
                raise PromotionValidationError(
                    f"Invalid rule target '{rule.target_value}'"
                ) from None

        product_ids = [link.product_id for link in data.products]
        if len(set(product_ids)) != len(product_ids):
            raise PromotionValidationError("A product can only be linked to an event once")
        missing = set(product_ids) - set(self.product_repo.get_by_ids(product_ids))
        if missing:
            raise PromotionValidationError(
                f"Unknown product(s): {', '.join(sorted(str(m) for m in missing))}"
            )

        event = self.event_repo.create(data, start_date, end_date)
        self._invalidate()
        logger.info("Created promotion event %s (%s)", event.id, event.name)
        return event

    def activate(self, event_id: UUID, now: datetime | None = None) -> PromotionEvent:
        """Activate a Draft or Paused event that has not ended.

        Raises:
            NotFoundError: If the event does not exist.
            PromotionValidationError: If the event is Expired, already Active,
                or its end date has passed.
        """
        now = ensure_utc(now or datetime.now(UTC))
        event = self.get_event(event_id)
        if event.status not in ACTIVATABLE_STATUSES:
            raise PromotionValidationError(f"Cannot activate an event in status '{event.status}'")
        if ensure_utc(event.end_date) <= now:  # type: ignore[arg-type]
            raise PromotionValidationError("Cannot activate an event that has already ended")

        event = self.event_repo.set_status(event, EventStatus.ACTIVE)
        self._invalidate()
        logger.info("Activated promotion event %s", event_id)
        return event

    def pause(self, event_id: UUID) -> PromotionEvent:
        event = self.get_event(event_id)
        if event.status != EventStatus.ACTIVE.value:
            raise PromotionValidationError(f"Cannot pause an event in status '{event.status}'")
        event = self.event_repo.set_status(event, EventStatus.PAUSED)
        self._invalidate()
        logger.info("Paused promotion event %s", event_id)
        return event

    def delete(self, event_id: UUID, now: datetime | None = None) -> None:
        """Soft delete an event. Usage records keep pointing at it."""
        event = self.get_event(event_id)
        self.event_repo.soft_delete(event, now or datetime.now(UTC))
        self._invalidate()
        logger.info("Deleted promotion event %s", event_id)

    def restore(self, event_id: UUID) -> PromotionEvent:
        """Undo a soft delete. The event comes back inactive."""
        event = self.event_repo.get_by_id(event_id, include_deleted=True)
        if not event:
            raise NotFoundError(f"Promotion event {event_id} not found")
        if not event.is_deleted:
            raise PromotionValidationError("Promotion event is not deleted")
        event = self.event_repo.restore(event)
        self._invalidate()
        logger.info("Restored promotion event %s", event_id)
        return event

    def get_detail(
        self, event_id: UUID, now: datetime | None = None
    ) -> PromotionEventDetailResponse:
        event = self.get_event(event_id)
        rules = self.event_repo.get_rules_for_events([event_id]).get(event_id, [])
        links = self.event_repo.get_products_for_events([event_id]).get(event_id, [])

        detail = PromotionEventDetailResponse.model_validate(event)
        detail.rules = [EventRuleResponse.model_validate(rule) for rule in rules]
        detail.products = [EventProductResponse.model_validate(link) for link in links]
        detail.window_status = window_status(
            event.start_date, event.end_date, now  # type: ignore[arg-type]
        )
        return detail

    def expire_ended_events(self, now: datetime | None = None) -> int:
        """Move every event past its end date to Expired."""
        expired = self.event_repo.expire_ended(ensure_utc(now or datetime.now(UTC)))
        if expired:
            self._invalidate()
            logger.info("Expired %d promotion event(s)", expired)
        return expired
