"""Order repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.models.order import Order, OrderItem, OrderStatus, UsageStatus


class OrderRepository:
    """Repository for Order and OrderItem models."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, order_id: UUID) -> Order | None:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_items(self, order_id: UUID) -> list[OrderItem]:
        return (
            self.db.query(OrderItem)
            .filter(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at.asc(), OrderItem.id.asc())
            .all()
        )

    def get_by_usage_status(self, usage_status: UsageStatus, limit: int = 100) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.usage_status == usage_status.value)
            .order_by(Order.created_at.asc())
            .limit(limit)
            .all()
        )

    def add(self, order: Order, items: list[OrderItem]) -> Order:
        """Stage an order and its items. Does not commit."""
        self.db.add(order)
        self.db.flush()
        for item in items:
            item.order_id = order.id
            self.db.add(item)
        self.db.flush()
        return order

    def set_usage_status(self, order: Order, usage_status: UsageStatus) -> Order:
        order.usage_status = usage_status.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(order)
        return order

    def mark_confirmed(self, order: Order, now: datetime, usage_status: UsageStatus) -> Order:
        order.status = OrderStatus.CONFIRMED.value  # type: ignore[assignment]
        order.usage_status = usage_status.value  # type: ignore[assignment]
        order.confirmed_at = now  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(order)
        return order

    def mark_cancelled(self, order: Order, now: datetime, usage_status: UsageStatus) -> Order:
        order.status = OrderStatus.CANCELLED.value  # type: ignore[assignment]
        order.usage_status = usage_status.value  # type: ignore[assignment]
        order.cancelled_at = now  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(order)
        return order
