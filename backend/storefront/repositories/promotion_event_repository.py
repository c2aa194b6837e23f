"""Promotion event repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from storefront.models.promotion_event import EventProduct, EventRule, EventStatus, PromotionEvent
from storefront.models.usage import EventUsage
from storefront.schemas.promotion_event import PromotionEventCreate


class PromotionEventRepository:
    """Repository for PromotionEvent and its rules and product links."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: EventStatus | None = None,
        include_deleted: bool = False,
    ) -> list[PromotionEvent]:
        """Get all events with optional filters."""
        query = self.db.query(PromotionEvent)

        if not include_deleted:
            query = query.filter(PromotionEvent.is_deleted.is_(False))
        if status:
            query = query.filter(PromotionEvent.status == status.value)

        return (
            query.order_by(PromotionEvent.priority.desc(), PromotionEvent.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_id(self, event_id: UUID, include_deleted: bool = False) -> PromotionEvent | None:
        """Get an event by ID."""
        query = self.db.query(PromotionEvent).filter(PromotionEvent.id == event_id)
        if not include_deleted:
            query = query.filter(PromotionEvent.is_deleted.is_(False))
        return query.first()

    def get_activated(self, now: datetime) -> list[PromotionEvent]:
        """Get activated, non-deleted events that have not yet ended.

        The daily time slot and the start date are evaluated by the caller.
        """
        return (
            self.db.query(PromotionEvent)
            .filter(
                PromotionEvent.is_active.is_(True),
                PromotionEvent.is_deleted.is_(False),
                PromotionEvent.status == EventStatus.ACTIVE.value,
                PromotionEvent.end_date >= now,
            )
            .all()
        )

    def get_rules_for_events(self, event_ids: list[UUID]) -> dict[UUID, list[EventRule]]:
        """Get rules grouped by event ID, highest rule priority first."""
        grouped: dict[UUID, list[EventRule]] = {event_id: [] for event_id in event_ids}
        if not event_ids:
            return grouped
        rules = (
            self.db.query(EventRule)
            .filter(EventRule.event_id.in_(event_ids))
            .order_by(EventRule.priority.desc(), EventRule.created_at.asc())
            .all()
        )
        for rule in rules:
            grouped.setdefault(rule.event_id, []).append(rule)  # type: ignore[arg-type]
        return grouped

    def get_products_for_events(self, event_ids: list[UUID]) -> dict[UUID, list[EventProduct]]:
        """Get direct product links grouped by event ID."""
        grouped: dict[UUID, list[EventProduct]] = {event_id: [] for event_id in event_ids}
        if not event_ids:
            return grouped
        links = self.db.query(EventProduct).filter(EventProduct.event_id.in_(event_ids)).all()
        for link in links:
            grouped.setdefault(link.event_id, []).append(link)  # type: ignore[arg-type]
        return grouped

    def create(
        self,
        data: PromotionEventCreate,
        start_date: datetime,
        end_date: datetime,
    ) -> PromotionEvent:
        """Create a new event in Draft with its rules and product links."""
        event = PromotionEvent(
            name=data.name,
            description=data.description,
            tagline=data.tagline,
            promotion_type=data.promotion_type.value,
            discount_value=data.discount_value,
            max_discount_amount=data.max_discount_amount,
            min_order_value=data.min_order_value,
            start_date=start_date,
            end_date=end_date,
            active_slot_start=data.active_slot_start,
            active_slot_end=data.active_slot_end,
            priority=data.priority,
            max_usage_count=data.max_usage_count,
            max_usage_per_user=data.max_usage_per_user,
            status=EventStatus.DRAFT.value,
            is_active=False,
        )
        self.db.add(event)
        self.db.flush()

        for rule in data.rules:
            self.db.add(
                EventRule(
                    event_id=event.id,
                    target_type=rule.target_type.value,
                    target_value=rule.target_value,
                    promotion_type=rule.promotion_type.value if rule.promotion_type else None,
                    discount_value=rule.discount_value,
                    max_discount_amount=rule.max_discount_amount,
                    min_order_value=rule.min_order_value,
                    priority=rule.priority,
                )
            )
        for link in data.products:
            self.db.add(
                EventProduct(
                    event_id=event.id,
                    product_id=link.product_id,
                    specific_discount=link.specific_discount,
                )
            )

        self.db.commit()
        self.db.refresh(event)
        return event

    def set_status(self, event: PromotionEvent, status: EventStatus) -> PromotionEvent:
        """Move an event to a status, keeping ``is_active`` in agreement."""
        event.status = status.value  # type: ignore[assignment]
        event.is_active = status == EventStatus.ACTIVE  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(event)
        return event

    def soft_delete(self, event: PromotionEvent, now: datetime) -> PromotionEvent:
        """Soft delete an event; usage records keep referencing it.

        A deleted Active event becomes Paused so it must be re-activated
        explicitly after a restore.
        """
        if event.status == EventStatus.ACTIVE.value:
            event.status = EventStatus.PAUSED.value  # type: ignore[assignment]
        event.is_deleted = True  # type: ignore[assignment]
        event.is_active = False  # type: ignore[assignment]
        event.deleted_at = now  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(event)
        return event

    def restore(self, event: PromotionEvent) -> PromotionEvent:
        event.is_deleted = False  # type: ignore[assignment]
        event.deleted_at = None  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(event)
        return event

    def expire_ended(self, now: datetime) -> int:
        """Mark every non-expired event whose end date has passed as Expired."""
        count = (
            self.db.query(PromotionEvent)
            .filter(
                PromotionEvent.end_date < now,
                PromotionEvent.status != EventStatus.EXPIRED.value,
                PromotionEvent.is_deleted.is_(False),
            )
            .update(
                {
                    PromotionEvent.status: EventStatus.EXPIRED.value,
                    PromotionEvent.is_active: False,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return int(count)

    def try_increment_usage(self, event_id: UUID) -> bool:
        """Atomically take one use if the global limit allows it.

        Does not commit; the caller owns the transaction.
        """
        updated = (
            self.db.query(PromotionEvent)
            .filter(
                PromotionEvent.id == event_id,
                or_(
                    PromotionEvent.max_usage_count.is_(None),
                    PromotionEvent.current_usage_count < PromotionEvent.max_usage_count,
                ),
            )
            .update(
                {PromotionEvent.current_usage_count: PromotionEvent.current_usage_count + 1},
                synchronize_session=False,
            )
        )
        return bool(updated)

    def decrement_usage(self, event_id: UUID) -> bool:
        """Give back one use, never going below zero. Does not commit."""
        updated = (
            self.db.query(PromotionEvent)
            .filter(PromotionEvent.id == event_id, PromotionEvent.current_usage_count > 0)
            .update(
                {PromotionEvent.current_usage_count: PromotionEvent.current_usage_count - 1},
                synchronize_session=False,
            )
        )
        return bool(updated)

    def get_exhausted_ids(self, event_ids: list[UUID], user_id: UUID | None = None) -> set[UUID]:
        """IDs of events that reached their global limit, or the user's limit.

        Always reads from the database so freshly recorded usage is seen.
        """
        if not event_ids:
            return set()

        rows = (
            self.db.query(
                PromotionEvent.id,
                PromotionEvent.max_usage_count,
                PromotionEvent.max_usage_per_user,
                PromotionEvent.current_usage_count,
            )
            .filter(PromotionEvent.id.in_(event_ids))
            .all()
        )

        exhausted: set[UUID] = set()
        per_user_limits: dict[UUID, int] = {}
        for event_id, max_usage, max_per_user, current in rows:
            if max_usage is not None and current >= max_usage:
                exhausted.add(event_id)
            elif max_per_user is not None:
                per_user_limits[event_id] = max_per_user

        if user_id is not None and per_user_limits:
            counts = (
                self.db.query(EventUsage.event_id, func.count(EventUsage.id))
                .filter(
                    EventUsage.event_id.in_(list(per_user_limits)),
                    EventUsage.user_id == user_id,
                    EventUsage.is_voided.is_(False),
                )
                .group_by(EventUsage.event_id)
                .all()
            )
            for event_id, used in counts:
                if used >= per_user_limits[event_id]:
                    exhausted.add(event_id)

        return exhausted
