"""Usage ledger repository for event and promo code usage."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.usage import EventUsage, PromoCodeUsage, PromotionUserUsage


class UsageRepository:
    """Repository for the usage ledgers and the per-user use counters.

    Writes flush but never commit; the usage accountant owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_event_usage(self, event_id: UUID, order_id: UUID) -> EventUsage | None:
        return (
            self.db.query(EventUsage)
            .filter(EventUsage.event_id == event_id, EventUsage.order_id == order_id)
            .first()
        )

    def get_promo_usage(self, promo_code_id: UUID, order_id: UUID) -> PromoCodeUsage | None:
        return (
            self.db.query(PromoCodeUsage)
            .filter(
                PromoCodeUsage.promo_code_id == promo_code_id,
                PromoCodeUsage.order_id == order_id,
            )
            .first()
        )

    def add_event_usage(
        self, event_id: UUID, user_id: UUID, order_id: UUID, discount_amount: Decimal
    ) -> EventUsage:
        usage = EventUsage(
            event_id=event_id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=discount_amount,
        )
        self.db.add(usage)
        self.db.flush()
        return usage

    def add_promo_usage(
        self, promo_code_id: UUID, user_id: UUID, order_id: UUID, discount_amount: Decimal
    ) -> PromoCodeUsage:
        usage = PromoCodeUsage(
            promo_code_id=promo_code_id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=discount_amount,
        )
        self.db.add(usage)
        self.db.flush()
        return usage

    def try_increment_user_usage(
        self, promotion_kind: str, promotion_id: UUID, user_id: UUID, limit: int | None
    ) -> bool:
        """Atomically take one of the user's uses if ``limit`` allows it.

        Creates the user's counter row on first use. A concurrent first use
        surfaces as IntegrityError on flush. Does not commit.
        """
        counter = self._user_counter_query(promotion_kind, promotion_id, user_id)
        if counter.first() is None:
            self.db.add(
                PromotionUserUsage(
                    promotion_kind=promotion_kind,
                    promotion_id=promotion_id,
                    user_id=user_id,
                    use_count=0,
                )
            )
            self.db.flush()
        if limit is not None:
            counter = counter.filter(PromotionUserUsage.use_count < limit)
        updated = counter.update(
            {PromotionUserUsage.use_count: PromotionUserUsage.use_count + 1},
            synchronize_session=False,
        )
        return bool(updated)

    def decrement_user_usage(self, promotion_kind: str, promotion_id: UUID, user_id: UUID) -> bool:
        """Give back one of the user's uses, never going below zero. Does not commit."""
        updated = (
            self._user_counter_query(promotion_kind, promotion_id, user_id)
            .filter(PromotionUserUsage.use_count > 0)
            .update(
                {PromotionUserUsage.use_count: PromotionUserUsage.use_count - 1},
                synchronize_session=False,
            )
        )
        return bool(updated)

    def _user_counter_query(self, promotion_kind: str, promotion_id: UUID, user_id: UUID):
        return self.db.query(PromotionUserUsage).filter(
            PromotionUserUsage.promotion_kind == promotion_kind,
            PromotionUserUsage.promotion_id == promotion_id,
            PromotionUserUsage.user_id == user_id,
        )

    def count_promo_usage_for_user(self, promo_code_id: UUID, user_id: UUID) -> int:
        """Count non-voided ledger rows for a promo code and user."""
        return (
            self.db.query(func.count(PromoCodeUsage.id))
            .filter(
                PromoCodeUsage.promo_code_id == promo_code_id,
                PromoCodeUsage.user_id == user_id,
                PromoCodeUsage.is_voided.is_(False),
            )
            .scalar()
            or 0
        )

    def get_active_for_order(
        self, order_id: UUID
    ) -> tuple[list[EventUsage], list[PromoCodeUsage]]:
        """Get the non-voided event and promo code rows recorded for an order."""
        events = (
            self.db.query(EventUsage)
            .filter(EventUsage.order_id == order_id, EventUsage.is_voided.is_(False))
            .all()
        )
        promos = (
            self.db.query(PromoCodeUsage)
            .filter(PromoCodeUsage.order_id == order_id, PromoCodeUsage.is_voided.is_(False))
            .all()
        )
        return events, promos

    def void(self, usage: EventUsage | PromoCodeUsage, now: datetime) -> None:
        usage.is_voided = True  # type: ignore[assignment]
        usage.voided_at = now  # type: ignore[assignment]
        self.db.flush()

    def get_promo_usages(
        self, promo_code_id: UUID, skip: int = 0, limit: int = 100
    ) -> list[PromoCodeUsage]:
        return (
            self.db.query(PromoCodeUsage)
            .filter(PromoCodeUsage.promo_code_id == promo_code_id)
            .order_by(PromoCodeUsage.used_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_promo_usage_totals(self, promo_code_id: UUID) -> tuple[int, Decimal]:
        """Return (uses, total discount) over non-voided rows."""
        count, total = (
            self.db.query(func.count(PromoCodeUsage.id), func.sum(PromoCodeUsage.discount_amount))
            .filter(
                PromoCodeUsage.promo_code_id == promo_code_id,
                PromoCodeUsage.is_voided.is_(False),
            )
            .one()
        )
        return int(count or 0), Decimal(str(total or 0))
