"""Cart item repository for data access."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.models.cart_item import CartItem


class CartItemRepository:
    """Repository for CartItem model."""

    def __init__(self, db: Session):
        self.db = db

    def get_for_user(self, user_id: UUID) -> list[CartItem]:
        """Get the user's cart lines, oldest first."""
        return (
            self.db.query(CartItem)
            .filter(CartItem.user_id == user_id, CartItem.is_deleted.is_(False))
            .order_by(CartItem.created_at.asc(), CartItem.id.asc())
            .all()
        )

    def get_by_id(self, item_id: UUID) -> CartItem | None:
        return (
            self.db.query(CartItem)
            .filter(CartItem.id == item_id, CartItem.is_deleted.is_(False))
            .first()
        )

    def get_by_user_and_product(self, user_id: UUID, product_id: UUID) -> CartItem | None:
        return (
            self.db.query(CartItem)
            .filter(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
                CartItem.is_deleted.is_(False),
            )
            .first()
        )

    def create(
        self,
        user_id: UUID,
        product_id: UUID,
        quantity: int,
        priced_at: datetime,
        expires_at: datetime,
    ) -> CartItem:
        """Create a cart line. Pricing is written by ``snapshot``. Does not commit."""
        item = CartItem(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            priced_at=priced_at,
            expires_at=expires_at,
        )
        self.db.add(item)
        self.db.flush()
        return item

    def snapshot(
        self,
        item: CartItem,
        *,
        original_price: Decimal,
        regular_discount: Decimal,
        event_discount: Decimal,
        promo_discount: Decimal,
        reserved_price: Decimal,
        applied_event_id: UUID | None,
        applied_promo_code_id: UUID | None,
        priced_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Write freshly resolved pricing onto a line and restart its reservation.

        Does not commit.
        """
        item.original_price = original_price  # type: ignore[assignment]
        item.regular_discount_amount = regular_discount  # type: ignore[assignment]
        item.event_discount_amount = event_discount  # type: ignore[assignment]
        item.promo_code_discount_amount = promo_discount  # type: ignore[assignment]
        item.reserved_price = reserved_price  # type: ignore[assignment]
        item.applied_event_id = applied_event_id  # type: ignore[assignment]
        item.applied_promo_code_id = applied_promo_code_id  # type: ignore[assignment]
        item.priced_at = priced_at  # type: ignore[assignment]
        item.expires_at = expires_at  # type: ignore[assignment]

    def soft_delete(self, item: CartItem) -> None:
        item.is_deleted = True  # type: ignore[assignment]
        self.db.commit()

    def soft_delete_many(self, item_ids: list[UUID]) -> int:
        """Consume lines. Does not commit."""
        if not item_ids:
            return 0
        return int(
            self.db.query(CartItem)
            .filter(CartItem.id.in_(item_ids))
            .update({CartItem.is_deleted: True}, synchronize_session=False)
        )
