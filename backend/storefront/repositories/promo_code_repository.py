"""Promo code repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from storefront.models.promo_code import PromoCode
from storefront.schemas.promo_code import PromoCodeCreate


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class PromoCodeRepository:
    """Repository for PromoCode model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        is_active: bool | None = None,
    ) -> list[PromoCode]:
        """Get all non-deleted promo codes with optional filters."""
        query = self.db.query(PromoCode).filter(PromoCode.is_deleted.is_(False))

        if is_active is not None:
            query = query.filter(PromoCode.is_active.is_(is_active))

        return query.order_by(PromoCode.created_at.desc()).offset(skip).limit(limit).all()

    def get_by_id(self, promo_code_id: UUID) -> PromoCode | None:
        """Get a promo code by ID."""
        return self.db.query(PromoCode).filter(PromoCode.id == promo_code_id).first()

    def get_by_code(self, code: str, include_deleted: bool = False) -> PromoCode | None:
        """Get a promo code by case-insensitive code."""
        query = self.db.query(PromoCode).filter(func.upper(PromoCode.code) == normalize_code(code))
        if not include_deleted:
            query = query.filter(PromoCode.is_deleted.is_(False))
        return query.first()

    def create(self, data: PromoCodeCreate, start_date: datetime, end_date: datetime) -> PromoCode:
        """Create a new promo code."""
        promo_code = PromoCode(
            code=normalize_code(data.code),
            description=data.description,
            promo_type=data.promo_type.value,
            discount_value=data.discount_value,
            max_discount_amount=data.max_discount_amount,
            min_order_amount=data.min_order_amount,
            max_total_usage=data.max_total_usage,
            max_usage_per_user=data.max_usage_per_user,
            start_date=start_date,
            end_date=end_date,
            is_active=data.is_active,
            apply_to_shipping=data.apply_to_shipping,
            stackable_with_events=data.stackable_with_events,
            customer_tier=data.customer_tier,
            category_id=data.category_id,
        )
        self.db.add(promo_code)
        self.db.commit()
        self.db.refresh(promo_code)
        return promo_code

    def set_active(self, promo_code: PromoCode, is_active: bool) -> PromoCode:
        promo_code.is_active = is_active  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(promo_code)
        return promo_code

    def soft_delete(self, promo_code: PromoCode, now: datetime) -> PromoCode:
        promo_code.is_deleted = True  # type: ignore[assignment]
        promo_code.is_active = False  # type: ignore[assignment]
        promo_code.deleted_at = now  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(promo_code)
        return promo_code

    def try_increment_usage(self, promo_code_id: UUID) -> bool:
        """Atomically take one use if the global limit allows it.

        Does not commit; the caller owns the transaction.
        """
        updated = (
            self.db.query(PromoCode)
            .filter(
                PromoCode.id == promo_code_id,
                or_(
                    PromoCode.max_total_usage.is_(None),
                    PromoCode.current_usage_count < PromoCode.max_total_usage,
                ),
            )
            .update(
                {PromoCode.current_usage_count: PromoCode.current_usage_count + 1},
                synchronize_session=False,
            )
        )
        return bool(updated)

    def decrement_usage(self, promo_code_id: UUID) -> bool:
        """Give back one use, never going below zero. Does not commit."""
        updated = (
            self.db.query(PromoCode)
            .filter(PromoCode.id == promo_code_id, PromoCode.current_usage_count > 0)
            .update(
                {PromoCode.current_usage_count: PromoCode.current_usage_count - 1},
                synchronize_session=False,
            )
        )
        return bool(updated)

    def get_usage_count(self, promo_code_id: UUID) -> int:
        """Read the global counter straight from the database."""
        value = (
            self.db.query(PromoCode.current_usage_count)
            .filter(PromoCode.id == promo_code_id)
            .scalar()
        )
        return int(value or 0)
