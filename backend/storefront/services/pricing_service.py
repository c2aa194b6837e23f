"""Pricing aggregation for single products and whole carts.

Per line: market price, then the regular (catalog) discount, then the event
discount, then the line's share of the promo code discount. Final prices are
clamped at zero. Shipping is quoted once per cart.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.cache import Cache
from storefront.core.config import settings
from storefront.core.exceptions import NotFoundError, UpstreamUnavailableError
from storefront.models.cart_item import CartItem
from storefront.models.product import Product
from storefront.models.shared import ensure_utc
from storefront.repositories.cart_item_repository import CartItemRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.promo_code_repository import PromoCodeRepository
from storefront.schemas.promotion_event import ActiveEventSnapshot
from storefront.schemas.shipping import Coordinates
from storefront.services.discounts import ZERO, quantize_money
from storefront.services.event_discount import calculate_event_discount
from storefront.services.event_eligibility import (
    EventEligibilityResolver,
    ProductRef,
    resolve_event,
)
from storefront.services.promo_code_service import (
    OrderContext,
    PromoApplicationResult,
    PromoCodeService,
    PromoLine,
)
from storefront.services.shipping_service import ShippingResult, ShippingService

logger = logging.getLogger(__name__)

PROMOTIONS_UNAVAILABLE = "Promotions are temporarily unavailable; showing base prices"
PROMOTIONS_TIMED_OUT = "Promotions could not be resolved in time; showing base prices"
PROMO_CODE_UNAVAILABLE = "Promo code could not be checked right now"
SHIPPING_UNAVAILABLE = "Shipping could not be calculated right now"


class PricingDeadline:
    """Cooperative time budget checked between pricing steps."""

    def __init__(self, seconds: float | None):
        self._expires_at = time.monotonic() + seconds if seconds else None

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at


@dataclass
class PriceBreakdown:
    """Line pricing. Every amount is a line total (unit amount times quantity)."""

    product_id: UUID
    quantity: int
    unit_market_price: Decimal
    original_price: Decimal
    regular_discount: Decimal
    base_price: Decimal
    event_discount: Decimal = ZERO
    promo_discount: Decimal = ZERO
    final_price: Decimal = ZERO
    applied_event_id: UUID | None = None
    applied_event_name: str | None = None
    applied_rule_id: UUID | None = None
    event_note: str | None = None
    applied_promo_code_id: UUID | None = None
    promo_note: str | None = None
    warnings: list[str] = field(default_factory=list)

    def finalize(self) -> "PriceBreakdown":
        self.final_price = max(
            ZERO, self.original_price - self.regular_discount - self.event_discount - self.promo_discount
        )
        return self


@dataclass
class CartLinePricing:
    cart_item_id: UUID
    pricing: PriceBreakdown
    reserved_price: Decimal
    expires_at: datetime
    is_expired: bool
    in_stock: bool
    is_price_stable: bool


@dataclass
class CartPricing:
    user_id: UUID
    lines: list[CartLinePricing] = field(default_factory=list)
    original_subtotal: Decimal = ZERO
    regular_discount_total: Decimal = ZERO
    event_discount_total: Decimal = ZERO
    promo_discount_total: Decimal = ZERO
    total_discounts: Decimal = ZERO
    final_subtotal: Decimal = ZERO
    shipping: ShippingResult | None = None
    shipping_discount: Decimal = ZERO
    grand_total: Decimal = ZERO
    promo: PromoApplicationResult | None = None
    can_checkout: bool = False
    is_price_stable: bool = True
    checkout_blockers: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def base_breakdown(product: Product, quantity: int) -> PriceBreakdown:
    """Apply the catalog sale price, if lower than the market price."""
    market = quantize_money(product.market_price)
    unit_base = market
    if product.discount_price is not None:
        unit_base = min(market, max(ZERO, quantize_money(product.discount_price)))
    original = quantize_money(market * quantity)
    base = quantize_money(unit_base * quantity)
    return PriceBreakdown(
        product_id=product.id,  # type: ignore[arg-type]
        quantity=quantity,
        unit_market_price=market,
        original_price=original,
        regular_discount=original - base,
        base_price=base,
        final_price=base,
    )


def product_ref(product: Product) -> ProductRef:
    return ProductRef(
        product_id=product.id,  # type: ignore[arg-type]
        category_id=product.category_id,  # type: ignore[arg-type]
        subcategory_id=product.subcategory_id,  # type: ignore[arg-type]
    )


def apply_event(
    breakdown: PriceBreakdown,
    product: Product,
    events: list[ActiveEventSnapshot],
    excluded: set[UUID],
    order_subtotal: Decimal,
    now: datetime,
) -> PriceBreakdown:
    """Resolve and apply the event discount for one line."""
    match = resolve_event(events, product_ref(product), now, excluded)
    if match is None:
        return breakdown

    unit_base = breakdown.base_price / breakdown.quantity if breakdown.quantity else ZERO
    result = calculate_event_discount(match, unit_base, breakdown.quantity, order_subtotal)
    breakdown.applied_event_name = result.event_name
    breakdown.applied_rule_id = result.rule_id
    breakdown.event_note = result.note
    if result.is_applied:
        breakdown.applied_event_id = result.event_id
        breakdown.event_discount = min(result.discount_amount, breakdown.base_price)
    return breakdown.finalize()


def is_in_stock(product: Product, quantity: int) -> bool:
    available = int(product.stock_quantity or 0) - int(product.reserved_stock or 0)
    return available >= quantity


class PricingService:
    """Service composing event, promo code and shipping pricing."""

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.cache = cache
        self.product_repo = ProductRepository(db)
        self.cart_repo = CartItemRepository(db)
        self.promo_repo = PromoCodeRepository(db)
        self.resolver = EventEligibilityResolver(db, cache)
        self.promo_service = PromoCodeService(db)
        self.shipping_service = ShippingService(db, cache)

    def _load_events(
        self, now: datetime, user_id: UUID | None, warnings: list[str]
    ) -> tuple[list[ActiveEventSnapshot], set[UUID]]:
        try:
            events = self.resolver.load_active_events(now)
            excluded = self.resolver.excluded_event_ids(events, user_id)
        except (UpstreamUnavailableError, SQLAlchemyError) as exc:
            logger.warning("Pricing without events: %s", exc)
            warnings.append(PROMOTIONS_UNAVAILABLE)
            return [], set()
        return events, excluded

    def resolve_product_price(
        self,
        product_id: UUID,
        quantity: int = 1,
        now: datetime | None = None,
        user_id: UUID | None = None,
    ) -> PriceBreakdown:
        """Price a product on its own, with its best event discount.

        Raises:
            NotFoundError: If the product does not exist.
        """
        now = ensure_utc(now or datetime.now(UTC))
        product = self.product_repo.get_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        breakdown = base_breakdown(product, quantity)
        events, excluded = self._load_events(now, user_id, breakdown.warnings)
        return apply_event(breakdown, product, events, excluded, breakdown.base_price, now)

    def price_cart(
        self,
        user_id: UUID,
        promo_code: str | None = None,
        customer_tier: str | None = None,
        coordinates: Coordinates | None = None,
        rush_requested: bool = False,
        now: datetime | None = None,
        max_acceptable_total: Decimal | None = None,
        deadline_seconds: float | None = None,
    ) -> CartPricing:
        """Price the user's cart.

        Never raises for promotion or shipping problems: those degrade to base
        prices with a warning. ``promo_code`` defaults to the code applied to
        the cart, which is re-validated here.
        """
        now = ensure_utc(now or datetime.now(UTC))
        deadline = PricingDeadline(deadline_seconds)
        pricing = CartPricing(user_id=user_id)

        items = self.cart_repo.get_for_user(user_id)
        products = self.product_repo.get_by_ids([item.product_id for item in items])  # type: ignore[misc]

        priced: list[tuple[CartItem, Product, PriceBreakdown]] = []
        for item in items:
            product = products.get(item.product_id)  # type: ignore[call-overload]
            if product is None:
                pricing.checkout_blockers.append(f"Product {item.product_id} is no longer available")
                continue
            priced.append((item, product, base_breakdown(product, int(item.quantity))))

        base_subtotal = quantize_money(sum((b.base_price for _, _, b in priced), ZERO))

        if priced and not deadline.expired:
            events, excluded = self._load_events(now, user_id, pricing.warnings)
            for _, product, breakdown in priced:
                if deadline.expired:
                    self._note_timeout(pricing)
                    break
                apply_event(breakdown, product, events, excluded, base_subtotal, now)
        elif priced:
            self._note_timeout(pricing)

        post_event_subtotal = quantize_money(
            sum((b.base_price - b.event_discount for _, _, b in priced), ZERO)
        )

        try:
            pricing.shipping = self.shipping_service.calculate_shipping(
                post_event_subtotal, coordinates, rush_requested, now
            )
        except UpstreamUnavailableError:
            pricing.warnings.append(SHIPPING_UNAVAILABLE)
        shipping_cost = pricing.shipping.shipping_cost if pricing.shipping else ZERO

        code = promo_code or self._applied_code(items)
        if code and priced:
            if deadline.expired:
                self._note_timeout(pricing)
            else:
                pricing.promo = self._apply_promo(
                    code, user_id, priced, shipping_cost, customer_tier, now, pricing.warnings
                )

        self._assemble(pricing, priced, now, max_acceptable_total)
        return pricing

    def _note_timeout(self, pricing: CartPricing) -> None:
        if PROMOTIONS_TIMED_OUT not in pricing.warnings:
            logger.warning("Pricing deadline exceeded for user %s", pricing.user_id)
            pricing.warnings.append(PROMOTIONS_TIMED_OUT)

    def _applied_code(self, items: list[CartItem]) -> str | None:
        for item in items:
            if item.applied_promo_code_id is not None:
                promo_code = self.promo_repo.get_by_id(item.applied_promo_code_id)  # type: ignore[arg-type]
                return str(promo_code.code) if promo_code else None
        return None

    def _apply_promo(
        self,
        code: str,
        user_id: UUID,
        priced: list[tuple[CartItem, Product, PriceBreakdown]],
        shipping_cost: Decimal,
        customer_tier: str | None,
        now: datetime,
        warnings: list[str],
    ) -> PromoApplicationResult | None:
        context = OrderContext(
            lines=[
                PromoLine(
                    line_id=str(item.id),
                    product_id=product.id,  # type: ignore[arg-type]
                    amount=breakdown.base_price - breakdown.event_discount,
                    category_id=product.category_id,  # type: ignore[arg-type]
                    has_event_discount=breakdown.event_discount > 0,
                )
                for item, product, breakdown in priced
            ],
            shipping_cost=shipping_cost,
            customer_tier=customer_tier,
        )
        try:
            result = self.promo_service.validate_and_apply(code, user_id, context, now)
        except SQLAlchemyError as exc:
            logger.warning("Promo code %s could not be validated: %s", code, exc)
            warnings.append(PROMO_CODE_UNAVAILABLE)
            return None

        if result.is_valid:
            for item, _, breakdown in priced:
                share = result.discount_for(str(item.id))
                line = next(d for d in result.item_discounts if d.line_id == str(item.id))
                breakdown.promo_note = line.reason
                if share > 0:
                    breakdown.promo_discount = share
                    breakdown.applied_promo_code_id = result.promo_code_id
                    breakdown.finalize()
        return result

    def _assemble(
        self,
        pricing: CartPricing,
        priced: list[tuple[CartItem, Product, PriceBreakdown]],
        now: datetime,
        max_acceptable_total: Decimal | None,
    ) -> None:
        ttl = timedelta(minutes=settings.CART_RESERVATION_TTL_MINUTES)
        for item, product, breakdown in priced:
            expires_at = ensure_utc(item.expires_at)  # type: ignore[arg-type]
            is_expired = expires_at <= now
            in_stock = is_in_stock(product, breakdown.quantity)
            stable = self._is_line_stable(item, breakdown, now, ttl)

            if is_expired:
                pricing.checkout_blockers.append(f"Reservation for {product.name} has expired")
            if not in_stock:
                pricing.checkout_blockers.append(f"{product.name} is out of stock")

            pricing.lines.append(
                CartLinePricing(
                    cart_item_id=item.id,  # type: ignore[arg-type]
                    pricing=breakdown,
                    reserved_price=quantize_money(item.reserved_price),
                    expires_at=expires_at,
                    is_expired=is_expired,
                    in_stock=in_stock,
                    is_price_stable=stable,
                )
            )
            pricing.original_subtotal += breakdown.original_price
            pricing.regular_discount_total += breakdown.regular_discount
            pricing.event_discount_total += breakdown.event_discount
            pricing.promo_discount_total += breakdown.promo_discount
            pricing.final_subtotal += breakdown.final_price

        pricing.total_discounts = (
            pricing.regular_discount_total + pricing.event_discount_total + pricing.promo_discount_total
        )

        shipping_cost = ZERO
        if pricing.shipping is not None:
            if pricing.shipping.is_available:
                shipping_cost = pricing.shipping.shipping_cost
            else:
                pricing.checkout_blockers.append(
                    pricing.shipping.shipping_reason or "Shipping is unavailable"
                )
        if pricing.promo is not None and pricing.promo.is_valid:
            pricing.shipping_discount = min(pricing.promo.shipping_discount, shipping_cost)
        pricing.grand_total = pricing.final_subtotal + shipping_cost - pricing.shipping_discount

        if not pricing.lines:
            pricing.checkout_blockers.append("Cart is empty")
        pricing.can_checkout = not pricing.checkout_blockers
        pricing.is_price_stable = all(line.is_price_stable for line in pricing.lines)
        if max_acceptable_total is not None and pricing.grand_total > max_acceptable_total:
            pricing.is_price_stable = False

    @staticmethod
    def _is_line_stable(
        item: CartItem, breakdown: PriceBreakdown, now: datetime, ttl: timedelta
    ) -> bool:
        """Compare the reserved line against freshly resolved pricing.

        The pre-promo amount must match, a previously applied promo share
        must still hold, and the reservation must be younger than the TTL.
        """
        priced_at = ensure_utc(item.priced_at)  # type: ignore[arg-type]
        if now - priced_at > ttl:
            return False
        reserved_pre_promo = quantize_money(item.reserved_price) + quantize_money(
            item.promo_code_discount_amount
        )
        if reserved_pre_promo != breakdown.base_price - breakdown.event_discount:
            return False
        if item.applied_promo_code_id is not None and quantize_money(
            item.promo_code_discount_amount
        ) != breakdown.promo_discount:
            return False
        return True
