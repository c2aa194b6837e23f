"""Cart management: lines, price reservations and promo code application."""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.core.cache import Cache
from storefront.core.config import settings
from storefront.core.exceptions import NotFoundError
from storefront.models.cart_item import CartItem
from storefront.models.shared import ensure_utc
from storefront.repositories.cart_item_repository import CartItemRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.services.pricing_service import PROMO_CODE_UNAVAILABLE, CartPricing, PricingService
from storefront.services.promo_code_service import PromoApplicationResult

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart lines and their reserved prices.

    Every change re-prices the whole cart and snapshots the result onto the
    lines, so the stored amounts always satisfy
    ``reserved = original - regular - event - promo``.
    """

    def __init__(self, db: Session, cache: Cache):
        self.db = db
        self.cart_repo = CartItemRepository(db)
        self.product_repo = ProductRepository(db)
        self.pricing_service = PricingService(db, cache)

    def list_items(self, user_id: UUID) -> list[CartItem]:
        return self.cart_repo.get_for_user(user_id)

    def add_item(
        self,
        user_id: UUID,
        product_id: UUID,
        quantity: int,
        now: datetime | None = None,
    ) -> CartItem:
        """Add a product to the cart, merging with an existing line.

        Raises:
            NotFoundError: If the product does not exist.
            ValueError: If there is not enough stock.
        """
        now = ensure_utc(now or datetime.now(UTC))
        product = self.product_repo.get_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        item = self.cart_repo.get_by_user_and_product(user_id, product_id)
        total_quantity = quantity + (int(item.quantity) if item else 0)
        available = int(product.stock_quantity) - int(product.reserved_stock)
        if total_quantity > available:
            raise ValueError(f"Only {max(0, available)} unit(s) of {product.name} available")

        if item:
            item.quantity = total_quantity  # type: ignore[assignment]
        else:
            item = self.cart_repo.create(user_id, product_id, quantity, now, self._expiry(now))

        self.reprice(user_id, now=now)
        self.db.refresh(item)
        return item

    def update_quantity(
        self, item_id: UUID, quantity: int, now: datetime | None = None
    ) -> CartItem:
        now = ensure_utc(now or datetime.now(UTC))
        item = self.cart_repo.get_by_id(item_id)
        if not item:
            raise NotFoundError(f"Cart item {item_id} not found")
        product = self.product_repo.get_by_id(item.product_id)  # type: ignore[arg-type]
        if product and quantity > int(product.stock_quantity) - int(product.reserved_stock):
            raise ValueError(f"Not enough stock for {product.name}")

        item.quantity = quantity  # type: ignore[assignment]
        self.reprice(item.user_id, now=now)  # type: ignore[arg-type]
        self.db.refresh(item)
        return item

    def remove_item(self, item_id: UUID, now: datetime | None = None) -> None:
        item = self.cart_repo.get_by_id(item_id)
        if not item:
            raise NotFoundError(f"Cart item {item_id} not found")
        self.cart_repo.soft_delete(item)
        self.reprice(item.user_id, now=now)  # type: ignore[arg-type]

    def apply_promo_code(
        self,
        user_id: UUID,
        code: str,
        customer_tier: str | None = None,
        now: datetime | None = None,
    ) -> PromoApplicationResult:
        """Validate a code against the cart and store its per-line shares.

        Usage is not recorded here; that happens when the order is confirmed.
        An invalid code leaves the cart untouched.

        Raises:
            ValueError: If the cart is empty.
        """
        if not self.cart_repo.get_for_user(user_id):
            raise ValueError("Cart is empty")

        pricing = self.pricing_service.price_cart(
            user_id, promo_code=code, customer_tier=customer_tier, now=now
        )
        if pricing.promo is None:
            return PromoApplicationResult(
                is_valid=False, code=code.strip().upper(), reasons=[PROMO_CODE_UNAVAILABLE]
            )
        if pricing.promo.is_valid:
            self._snapshot(pricing, now)
            logger.info("Applied promo code %s to cart of user %s", pricing.promo.code, user_id)
        return pricing.promo

    def remove_promo_code(self, user_id: UUID, now: datetime | None = None) -> CartPricing:
        for item in self.cart_repo.get_for_user(user_id):
            item.applied_promo_code_id = None  # type: ignore[assignment]
        self.db.flush()
        return self.reprice(user_id, now=now)

    def reprice(
        self,
        user_id: UUID,
        customer_tier: str | None = None,
        now: datetime | None = None,
    ) -> CartPricing:
        """Re-resolve pricing for the cart and snapshot it onto every line."""
        self.db.flush()
        pricing = self.pricing_service.price_cart(user_id, customer_tier=customer_tier, now=now)
        if pricing.promo is not None and not pricing.promo.is_valid:
            logger.info(
                "Dropping promo code %s from cart of user %s: %s",
                pricing.promo.code,
                user_id,
                pricing.promo.reasons,
            )
        self._snapshot(pricing, now)
        return pricing

    def _snapshot(self, pricing: CartPricing, now: datetime | None) -> None:
        now = ensure_utc(now or datetime.now(UTC))
        promo_code_id = (
            pricing.promo.promo_code_id if pricing.promo and pricing.promo.is_valid else None
        )
        items = {item.id: item for item in self.cart_repo.get_for_user(pricing.user_id)}
        for line in pricing.lines:
            item = items.get(line.cart_item_id)  # type: ignore[call-overload]
            if item is None:
                continue
            breakdown = line.pricing
            self.cart_repo.snapshot(
                item,
                original_price=breakdown.original_price,
                regular_discount=breakdown.regular_discount,
                event_discount=breakdown.event_discount,
                promo_discount=breakdown.promo_discount,
                reserved_price=breakdown.final_price,
                applied_event_id=breakdown.applied_event_id,
                applied_promo_code_id=promo_code_id,
                priced_at=now,
                expires_at=self._expiry(now),
            )
        self.db.commit()

    @staticmethod
    def _expiry(now: datetime) -> datetime:
        return now + timedelta(minutes=settings.CART_RESERVATION_TTL_MINUTES)
