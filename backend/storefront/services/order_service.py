"""Order placement and promotion usage accounting for orders."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.core.cache import Cache
from storefront.core.exceptions import CheckoutError, NotFoundError
from storefront.models.order import Order, OrderItem, OrderStatus, UsageStatus
from storefront.models.shared import ensure_utc
from storefront.repositories.cart_item_repository import CartItemRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.usage_repository import UsageRepository
from storefront.schemas.order import PlaceOrderRequest
from storefront.services.discounts import ZERO, format_rupees, quantize_money
from storefront.services.pricing_service import PricingService
from storefront.services.usage_accountant import (
    PromotionKind,
    PromotionRef,
    UsageAccountant,
)

logger = logging.getLogger(__name__)


@dataclass
class UsageConfirmation:
    order_id: UUID
    usage_status: str
    recorded: int
    already_recorded: int


@dataclass
class CancellationResult:
    order_id: UUID
    status: str
    usage_status: str
    reversal_queued: bool


def order_promotions(order: Order, items: list[OrderItem]) -> list[tuple[PromotionRef, Decimal]]:
    """List each promotion used by an order with the discount it gave."""
    event_totals: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for item in items:
        if item.applied_event_id is not None:
            event_totals[item.applied_event_id] += quantize_money(item.event_discount_amount)  # type: ignore[index]

    promotions = [
        (PromotionRef(PromotionKind.EVENT, event_id), amount)
        for event_id, amount in sorted(event_totals.items(), key=lambda pair: str(pair[0]))
    ]
    if order.applied_promo_code_id is not None:
        promo_amount = quantize_money(order.promo_discount_total) + quantize_money(
            order.shipping_discount
        )
        promotions.append(
            (PromotionRef(PromotionKind.PROMO_CODE, order.applied_promo_code_id), promo_amount)  # type: ignore[arg-type]
        )
    return promotions


class OrderService:
    """Service for placing orders and accounting their promotion usage."""

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.cart_repo = CartItemRepository(db)
        self.product_repo = ProductRepository(db)
        self.usage_repo = UsageRepository(db)
        self.accountant = UsageAccountant(db)
        self.pricing_service = PricingService(db, cache)

    def get_order(self, order_id: UUID) -> Order:
        order = self.order_repo.get_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def place_order(self, data: PlaceOrderRequest, now: datetime | None = None) -> Order:
        """Freeze freshly resolved cart pricing into an order.

        Pricing is always re-resolved here; stored cart amounts are never
        trusted. Usage is not recorded until the order is confirmed.

        Raises:
            CheckoutError: With display-ready reasons when the cart cannot be
                checked out, the promo code is invalid, or the total moved
                above ``max_acceptable_total``.
        """
        now = ensure_utc(now or datetime.now(UTC))
        pricing = self.pricing_service.price_cart(
            data.user_id,
            promo_code=data.promo_code,
            customer_tier=data.customer_tier,
            coordinates=data.coordinates,
            rush_requested=data.rush_delivery,
            now=now,
        )

        if not pricing.can_checkout:
            raise CheckoutError(pricing.checkout_blockers)
        if data.promo_code:
            if pricing.promo is None:
                raise CheckoutError(pricing.warnings or ["Promo code could not be checked"])
            if not pricing.promo.is_valid:
                raise CheckoutError(pricing.promo.reasons)
        if data.max_acceptable_total is not None and pricing.grand_total > data.max_acceptable_total:
            raise CheckoutError(
                [f"Order total has changed to {format_rupees(pricing.grand_total)}"]
            )

        promo_code_id = pricing.promo.promo_code_id if pricing.promo and pricing.promo.is_valid else None
        uses_promotions = promo_code_id is not None or any(
            line.pricing.applied_event_id for line in pricing.lines
        )
        shipping_cost = (
            pricing.shipping.shipping_cost
            if pricing.shipping and pricing.shipping.is_available
            else ZERO
        )

        order = Order(
            user_id=data.user_id,
            status=OrderStatus.PENDING.value,
            usage_status=(UsageStatus.PENDING if uses_promotions else UsageStatus.NONE).value,
            original_subtotal=pricing.original_subtotal,
            regular_discount_total=pricing.regular_discount_total,
            event_discount_total=pricing.event_discount_total,
            promo_discount_total=pricing.promo_discount_total,
            final_subtotal=pricing.final_subtotal,
            shipping_cost=shipping_cost,
            shipping_discount=pricing.shipping_discount,
            total_amount=pricing.grand_total,
            applied_promo_code_id=promo_code_id,
            rush_delivery=data.rush_delivery,
            delivery_latitude=data.coordinates.latitude if data.coordinates else None,
            delivery_longitude=data.coordinates.longitude if data.coordinates else None,
        )
        items = [
            OrderItem(
                product_id=line.pricing.product_id,
                quantity=line.pricing.quantity,
                original_price=line.pricing.original_price,
                regular_discount_amount=line.pricing.regular_discount,
                event_discount_amount=line.pricing.event_discount,
                promo_code_discount_amount=line.pricing.promo_discount,
                reserved_price=line.pricing.final_price,
                applied_event_id=line.pricing.applied_event_id,
                applied_promo_code_id=line.pricing.applied_promo_code_id,
            )
            for line in pricing.lines
        ]

        try:
            self.order_repo.add(order, items)
            for item in items:
                if not self.product_repo.decrement_stock(item.product_id, int(item.quantity)):  # type: ignore[arg-type]
                    raise CheckoutError([f"Product {item.product_id} is out of stock"])
            self.cart_repo.soft_delete_many([line.cart_item_id for line in pricing.lines])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            "Placed order %s for user %s: total %s (%d item(s))",
            order.id,
            data.user_id,
            order.total_amount,
            len(items),
        )
        return order

    def confirm_order_usage(self, order_id: UUID, now: datetime | None = None) -> UsageConfirmation:
        """Record every promotion the order used, then confirm it.

        Safe to retry: promotions already in the ledger are skipped. If one
        promotion is recorded and another fails, the order is marked partial
        and the error propagates.

        Raises:
            NotFoundError: If the order does not exist.
            ValueError: If the order was cancelled.
            ConcurrencyConflictError: If a promotion was exhausted meanwhile.
        """
        now = ensure_utc(now or datetime.now(UTC))
        order = self.get_order(order_id)
        if order.status == OrderStatus.CANCELLED.value:
            raise ValueError("Cancelled orders cannot be confirmed")

        promotions = order_promotions(order, self.order_repo.get_items(order_id))
        recorded = 0
        already = 0
        for promotion, amount in promotions:
            try:
                result = self.accountant.record_usage(
                    promotion,
                    order.user_id,  # type: ignore[arg-type]
                    order_id,
                    amount,
                )
            except Exception:
                self._mark_after_failure(order)
                raise
            if result.recorded:
                recorded += 1
            else:
                already += 1

        usage_status = UsageStatus.ACCOUNTED if promotions else UsageStatus.NONE
        order = self.order_repo.mark_confirmed(order, now, usage_status)
        return UsageConfirmation(
            order_id=order_id,
            usage_status=str(order.usage_status),
            recorded=recorded,
            already_recorded=already,
        )

    def _mark_after_failure(self, order: Order) -> None:
        events, promos = self.usage_repo.get_active_for_order(order.id)  # type: ignore[arg-type]
        status = UsageStatus.PARTIAL if events or promos else UsageStatus.PENDING
        self.order_repo.set_usage_status(order, status)
        if status == UsageStatus.PARTIAL:
            logger.warning("Order %s usage is partially recorded; reconciliation required", order.id)

    def cancel_order(self, order_id: UUID, now: datetime | None = None) -> CancellationResult:
        """Cancel an order and give back its promotion uses.

        Cancellation always succeeds. If the reversal fails the order is left
        as ``reversal_pending`` for a background retry.

        Raises:
            NotFoundError: If the order does not exist.
        """
        now = ensure_utc(now or datetime.now(UTC))
        order = self.get_order(order_id)
        if order.status == OrderStatus.CANCELLED.value:
            return CancellationResult(
                order_id=order_id,
                status=str(order.status),
                usage_status=str(order.usage_status),
                reversal_queued=order.usage_status == UsageStatus.REVERSAL_PENDING.value,
            )

        reversal_queued = False
        try:
            reversal = self.accountant.reverse_usage(order_id, now)
            usage_status = UsageStatus.REVERSED if reversal.total_reversed else UsageStatus.NONE
        except Exception:
            logger.exception("Usage reversal failed for order %s; queued for retry", order_id)
            usage_status = UsageStatus.REVERSAL_PENDING
            reversal_queued = True

        for item in self.order_repo.get_items(order_id):
            self.product_repo.increment_stock(item.product_id, int(item.quantity))  # type: ignore[arg-type]
        order = self.order_repo.mark_cancelled(order, now, usage_status)
        logger.info("Cancelled order %s (usage %s)", order_id, usage_status.value)
        return CancellationResult(
            order_id=order_id,
            status=str(order.status),
            usage_status=str(order.usage_status),
            reversal_queued=reversal_queued,
        )

    def retry_reversal(self, order_id: UUID, now: datetime | None = None) -> bool:
        """Retry a failed reversal. Returns True once the usage is reversed."""
        order = self.get_order(order_id)
        if order.usage_status != UsageStatus.REVERSAL_PENDING.value:
            return False
        try:
            self.accountant.reverse_usage(order_id, now)
        except Exception:
            logger.exception("Usage reversal retry failed for order %s", order_id)
            return False
        self.order_repo.set_usage_status(order, UsageStatus.REVERSED)
        return True

    def reconcile_partial_orders(self, limit: int = 100) -> int:
        """Retry confirmation for orders whose usage was partially recorded."""
        reconciled = 0
        for order in self.order_repo.get_by_usage_status(UsageStatus.PARTIAL, limit):
            try:
                self.confirm_order_usage(order.id)  # type: ignore[arg-type]
            except Exception:
                logger.exception("Reconciliation failed for order %s", order.id)
                continue
            reconciled += 1
        return reconciled

    def retry_pending_reversals(self, limit: int = 100) -> int:
        retried = 0
        for order in self.order_repo.get_by_usage_status(UsageStatus.REVERSAL_PENDING, limit):
            if self.retry_reversal(order.id):  # type: ignore[arg-type]
                retried += 1
        return retried
