"""Usage accounting for promotion events and promo codes.

Both the promotion's global counter and the user's per-promotion counter are
only changed through conditional UPDATE statements
(``count = count + 1 WHERE count < limit``), in the same transaction as the
ledger write. Nothing here reads a counter and writes it back.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.exceptions import ConcurrencyConflictError, NotFoundError
from storefront.models.usage import EventUsage, PromoCodeUsage
from storefront.repositories.promo_code_repository import PromoCodeRepository
from storefront.repositories.promotion_event_repository import PromotionEventRepository
from storefront.repositories.usage_repository import UsageRepository
from storefront.services.discounts import quantize_money

logger = logging.getLogger(__name__)


class PromotionKind(str, Enum):
    EVENT = "event"
    PROMO_CODE = "promo_code"


@dataclass(frozen=True)
class PromotionRef:
    kind: PromotionKind
    id: UUID


@dataclass
class RecordResult:
    """Outcome of a record call; ``recorded`` is False for an idempotent repeat."""

    recorded: bool
    usage: EventUsage | PromoCodeUsage


@dataclass
class ReversalResult:
    order_id: UUID
    events_reversed: int = 0
    promo_codes_reversed: int = 0

    @property
    def total_reversed(self) -> int:
        return self.events_reversed + self.promo_codes_reversed


class UsageAccountant:
    """Records and reverses promotion usage for orders."""

    def __init__(self, db: Session):
        self.db = db
        self.usage_repo = UsageRepository(db)
        self.event_repo = PromotionEventRepository(db)
        self.promo_repo = PromoCodeRepository(db)

    def record_usage(
        self,
        promotion: PromotionRef,
        user_id: UUID,
        order_id: UUID,
        discount_applied: Decimal,
    ) -> RecordResult:
        """Record one use of a promotion by an order.

        A second call for the same (promotion, order) is a no-op.

        Raises:
            NotFoundError: If the promotion does not exist.
            ConcurrencyConflictError: If the global or per-user limit is
                already reached.
        """
        existing = self._find(promotion, order_id)
        if existing is not None:
            logger.debug(
                "Usage of %s %s by order %s already recorded",
                promotion.kind.value,
                promotion.id,
                order_id,
            )
            return RecordResult(recorded=False, usage=existing)

        amount = quantize_money(discount_applied)
        for attempt in range(2):
            try:
                usage = self._take_use(promotion, user_id, order_id, amount)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                # Another confirmation of the same order won the insert.
                existing = self._find(promotion, order_id)
                if existing is not None:
                    return RecordResult(recorded=False, usage=existing)
                if attempt:
                    raise
                # Another first use by this user created the counter row.
                logger.debug(
                    "Retrying usage of %s %s by order %s",
                    promotion.kind.value,
                    promotion.id,
                    order_id,
                )
                continue
            except Exception:
                self.db.rollback()
                raise
            break

        logger.info(
            "Recorded %s usage %s for order %s (user %s, discount %s)",
            promotion.kind.value,
            promotion.id,
            order_id,
            user_id,
            amount,
        )
        return RecordResult(recorded=True, usage=usage)

    def record_event_usage(
        self, event_id: UUID, user_id: UUID, order_id: UUID, discount_applied: Decimal
    ) -> RecordResult:
        return self.record_usage(
            PromotionRef(PromotionKind.EVENT, event_id), user_id, order_id, discount_applied
        )

    def record_promo_code_usage(
        self, promo_code_id: UUID, user_id: UUID, order_id: UUID, discount_applied: Decimal
    ) -> RecordResult:
        return self.record_usage(
            PromotionRef(PromotionKind.PROMO_CODE, promo_code_id),
            user_id,
            order_id,
            discount_applied,
        )

    def reverse_usage(self, order_id: UUID, now: datetime | None = None) -> ReversalResult:
        """Void every live ledger row of an order and give its uses back.

        An order with nothing recorded is a successful no-op. Voided rows are
        skipped, so repeating the call decrements nothing.
        """
        now = now or datetime.now(UTC)
        result = ReversalResult(order_id=order_id)
        try:
            event_rows, promo_rows = self.usage_repo.get_active_for_order(order_id)
            for event_row in event_rows:
                self.usage_repo.void(event_row, now)
                self.event_repo.decrement_usage(event_row.event_id)  # type: ignore[arg-type]
                self.usage_repo.decrement_user_usage(
                    PromotionKind.EVENT.value,
                    event_row.event_id,  # type: ignore[arg-type]
                    event_row.user_id,  # type: ignore[arg-type]
                )
                result.events_reversed += 1
            for promo_row in promo_rows:
                self.usage_repo.void(promo_row, now)
                self.promo_repo.decrement_usage(promo_row.promo_code_id)  # type: ignore[arg-type]
                self.usage_repo.decrement_user_usage(
                    PromotionKind.PROMO_CODE.value,
                    promo_row.promo_code_id,  # type: ignore[arg-type]
                    promo_row.user_id,  # type: ignore[arg-type]
                )
                result.promo_codes_reversed += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if result.total_reversed:
            logger.info("Reversed %d usage record(s) for order %s", result.total_reversed, order_id)
        return result

    def _find(self, promotion: PromotionRef, order_id: UUID) -> EventUsage | PromoCodeUsage | None:
        if promotion.kind == PromotionKind.EVENT:
            return self.usage_repo.get_event_usage(promotion.id, order_id)
        return self.usage_repo.get_promo_usage(promotion.id, order_id)

    def _take_use(
        self, promotion: PromotionRef, user_id: UUID, order_id: UUID, amount: Decimal
    ) -> EventUsage | PromoCodeUsage:
        user_limit = self._user_limit(promotion)
        if not self.usage_repo.try_increment_user_usage(
            promotion.kind.value, promotion.id, user_id, user_limit
        ):
            raise ConcurrencyConflictError(
                "You have already used this promotion the maximum number of times"
            )
        if not self._increment(promotion):
            self._raise_for_failed_increment(promotion)
        return self._add(promotion, user_id, order_id, amount)

    def _user_limit(self, promotion: PromotionRef) -> int | None:
        if promotion.kind == PromotionKind.EVENT:
            event = self.event_repo.get_by_id(promotion.id, include_deleted=True)
            return event.max_usage_per_user if event else None  # type: ignore[return-value]
        promo_code = self.promo_repo.get_by_id(promotion.id)
        return promo_code.max_usage_per_user if promo_code else None  # type: ignore[return-value]

    def _increment(self, promotion: PromotionRef) -> bool:
        if promotion.kind == PromotionKind.EVENT:
            return self.event_repo.try_increment_usage(promotion.id)
        return self.promo_repo.try_increment_usage(promotion.id)

    def _raise_for_failed_increment(self, promotion: PromotionRef) -> None:
        if promotion.kind == PromotionKind.EVENT:
            exists = self.event_repo.get_by_id(promotion.id, include_deleted=True) is not None
        else:
            exists = self.promo_repo.get_by_id(promotion.id) is not None
        if not exists:
            raise NotFoundError(f"{promotion.kind.value} {promotion.id} not found")
        logger.warning("Usage limit reached for %s %s", promotion.kind.value, promotion.id)
        raise ConcurrencyConflictError()

    def _add(
        self, promotion: PromotionRef, user_id: UUID, order_id: UUID, amount: Decimal
    ) -> EventUsage | PromoCodeUsage:
        if promotion.kind == PromotionKind.EVENT:
            return self.usage_repo.add_event_usage(promotion.id, user_id, order_id, amount)
        return self.usage_repo.add_promo_usage(promotion.id, user_id, order_id, amount)
