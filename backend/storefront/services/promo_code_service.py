"""Promo code validation, discount application and administration."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from storefront.core.exceptions import NotFoundError, PromotionValidationError
from storefront.models.promo_code import PromoCode, PromoCodeType
from storefront.models.shared import ensure_utc
from storefront.repositories.promo_code_repository import PromoCodeRepository, normalize_code
from storefront.repositories.usage_repository import UsageRepository
from storefront.schemas.promo_code import PromoCodeCreate, PromoCodeUsageSummary
from storefront.services.discounts import (
    ZERO,
    Discount,
    FixedAmountDiscount,
    FreeShippingDiscount,
    PercentageDiscount,
    apportion,
    format_rupees,
    quantize_money,
    to_decimal,
)
from storefront.services.nepal_time import civil_to_utc, format_display

logger = logging.getLogger(__name__)

NOT_STACKABLE_REASON = "not stackable with active event"
NOT_IN_CATEGORY_REASON = "not in the promo code category"


@dataclass
class PromoLine:
    """A cart line as seen by a promo code.

    ``amount`` is the line subtotal after regular and event discounts.
    """

    line_id: str
    product_id: UUID
    amount: Decimal
    category_id: UUID | None = None
    has_event_discount: bool = False


@dataclass
class OrderContext:
    lines: list[PromoLine]
    shipping_cost: Decimal = ZERO
    customer_tier: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(sum((line.amount for line in self.lines), ZERO))


@dataclass
class PromoLineDiscount:
    line_id: str
    product_id: UUID
    discount_amount: Decimal
    reason: str | None = None


@dataclass
class PromoApplicationResult:
    is_valid: bool
    code: str
    promo_code_id: UUID | None = None
    promo_type: str | None = None
    discount: Discount | None = None
    formatted_discount: str | None = None
    item_discounts: list[PromoLineDiscount] = field(default_factory=list)
    item_discount_total: Decimal = ZERO
    shipping_discount: Decimal = ZERO
    reasons: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def total_discount(self) -> Decimal:
        return self.item_discount_total + self.shipping_discount

    def discount_for(self, line_id: str) -> Decimal:
        for item in self.item_discounts:
            if item.line_id == line_id:
                return item.discount_amount
        return ZERO


def discount_for_code(promo_code: PromoCode) -> Discount | None:
    """Build the discount shape for a code; None for unsupported types."""
    value = to_decimal(promo_code.discount_value) or ZERO
    cap = to_decimal(promo_code.max_discount_amount)
    if promo_code.promo_type == PromoCodeType.PERCENTAGE.value:
        return PercentageDiscount(rate=value, cap=cap)
    if promo_code.promo_type == PromoCodeType.FIXED_AMOUNT.value:
        return FixedAmountDiscount(amount=value, cap=cap)
    if promo_code.promo_type == PromoCodeType.FREE_SHIPPING.value:
        return FreeShippingDiscount(cap=cap)
    return None


def tier_matches(required_tier: str | None, customer_tier: str | None) -> bool:
    """An empty or "All" restriction matches every customer."""
    if not required_tier or required_tier.strip().lower() == "all":
        return True
    return bool(customer_tier) and customer_tier.strip().lower() == required_tier.strip().lower()


class PromoCodeService:
    """Service for validating, applying and managing promo codes."""

    def __init__(self, db: Session):
        self.db = db
        self.promo_repo = PromoCodeRepository(db)
        self.usage_repo = UsageRepository(db)

    def validate_and_apply(
        self,
        code: str,
        user_id: UUID,
        context: OrderContext,
        now: datetime | None = None,
    ) -> PromoApplicationResult:
        """Validate a code against an order and compute its discount.

        Existence, type, activation and the date window short-circuit. The
        remaining checks (minimum order, tier, category, global and per-user
        usage) are all collected so the caller can show every reason.

        Raises:
            PromotionValidationError: If no code was supplied.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise PromotionValidationError("Promo code is required")
        now = ensure_utc(now or datetime.now(UTC))

        promo_code = self.promo_repo.get_by_code(normalized)
        if not promo_code:
            return PromoApplicationResult(is_valid=False, code=normalized, reasons=["Invalid promo code"])

        result = PromoApplicationResult(
            is_valid=False,
            code=str(promo_code.code),
            promo_code_id=promo_code.id,  # type: ignore[arg-type]
            promo_type=str(promo_code.promo_type),
        )

        discount = discount_for_code(promo_code)
        if discount is None:
            result.reasons.append("Unsupported promotion type")
            return result
        result.discount = discount
        result.formatted_discount = discount.describe()

        if not promo_code.is_active:
            result.reasons.append("This promo code is currently inactive")
            return result
        start_date = ensure_utc(promo_code.start_date)  # type: ignore[arg-type]
        end_date = ensure_utc(promo_code.end_date)  # type: ignore[arg-type]
        if now < start_date:
            result.reasons.append(f"This promo code is not valid until {format_display(start_date)}")
            return result
        if now > end_date:
            result.reasons.append(f"This promo code expired on {format_display(end_date)}")
            return result

        result.reasons.extend(self._collect_failures(promo_code, user_id, context))
        if result.reasons:
            logger.debug("Promo code %s rejected for user %s: %s", normalized, user_id, result.reasons)
            return result

        result.is_valid = True
        self._apply_discount(promo_code, discount, context, result)
        return result

    def _collect_failures(
        self, promo_code: PromoCode, user_id: UUID, context: OrderContext
    ) -> list[str]:
        failures: list[str] = []

        min_order = to_decimal(promo_code.min_order_amount)
        if min_order is not None and min_order > 0:
            order_total = context.subtotal
            if promo_code.apply_to_shipping:
                order_total += quantize_money(context.shipping_cost)
            if order_total < min_order:
                failures.append(
                    f"Minimum order amount of {format_rupees(min_order)} required "
                    f"(current: {format_rupees(order_total)})"
                )

        if not tier_matches(promo_code.customer_tier, context.customer_tier):  # type: ignore[arg-type]
            failures.append(f"This promo code is only valid for {promo_code.customer_tier} customers")

        if promo_code.category_id is not None and not any(
            line.category_id == promo_code.category_id for line in context.lines
        ):
            failures.append("This promo code does not apply to any item in your cart")

        if promo_code.max_total_usage is not None:
            used = self.promo_repo.get_usage_count(promo_code.id)  # type: ignore[arg-type]
            if used >= promo_code.max_total_usage:
                failures.append("This promo code has reached its usage limit")

        if promo_code.max_usage_per_user is not None:
            user_uses = self.usage_repo.count_promo_usage_for_user(promo_code.id, user_id)  # type: ignore[arg-type]
            if user_uses >= promo_code.max_usage_per_user:
                failures.append(
                    "You have already used this promo code the maximum number of times "
                    f"({promo_code.max_usage_per_user})"
                )

        return failures

    def _apply_discount(
        self,
        promo_code: PromoCode,
        discount: Discount,
        context: OrderContext,
        result: PromoApplicationResult,
    ) -> None:
        if isinstance(discount, FreeShippingDiscount):
            result.shipping_discount = discount.amount_for(quantize_money(context.shipping_cost))
            result.item_discounts = [
                PromoLineDiscount(line.line_id, line.product_id, ZERO) for line in context.lines
            ]
            return

        eligible: list[PromoLine] = []
        for line in context.lines:
            if promo_code.category_id is not None and line.category_id != promo_code.category_id:
                continue
            if line.has_event_discount and not promo_code.stackable_with_events:
                continue
            eligible.append(line)

        base = quantize_money(sum((line.amount for line in eligible), ZERO))
        total = discount.amount_for(base)
        shares = dict(
            zip(
                [line.line_id for line in eligible],
                apportion(total, [line.amount for line in eligible]),
                strict=True,
            )
        )

        blocked_by_event = False
        for line in context.lines:
            if line.line_id in shares:
                result.item_discounts.append(
                    PromoLineDiscount(line.line_id, line.product_id, shares[line.line_id])
                )
                continue
            if promo_code.category_id is not None and line.category_id != promo_code.category_id:
                reason = NOT_IN_CATEGORY_REASON
            else:
                reason = NOT_STACKABLE_REASON
                blocked_by_event = True
            result.item_discounts.append(PromoLineDiscount(line.line_id, line.product_id, ZERO, reason))

        if blocked_by_event:
            result.notes.append(NOT_STACKABLE_REASON)
        result.item_discount_total = total

    def create_promo_code(self, data: PromoCodeCreate) -> PromoCode:
        """Create a promo code from civil (Nepal) date strings.

        Raises:
            PromotionValidationError: If the dates are malformed or out of order,
                or the code is already taken.
        """
        start_date = civil_to_utc(data.start_date)
        end_date = civil_to_utc(data.end_date)
        if end_date <= start_date:
            raise PromotionValidationError("End date must be after start date")
        if self.promo_repo.get_by_code(data.code, include_deleted=True):
            raise PromotionValidationError(f"Promo code '{normalize_code(data.code)}' already exists")

        promo_code = self.promo_repo.create(data, start_date, end_date)
        logger.info("Created promo code %s (%s)", promo_code.code, promo_code.promo_type)
        return promo_code

    def _get_or_raise(self, promo_code_id: UUID) -> PromoCode:
        promo_code = self.promo_repo.get_by_id(promo_code_id)
        if not promo_code or promo_code.is_deleted:
            raise NotFoundError(f"Promo code {promo_code_id} not found")
        return promo_code

    def activate(self, promo_code_id: UUID) -> PromoCode:
        return self.promo_repo.set_active(self._get_or_raise(promo_code_id), True)

    def deactivate(self, promo_code_id: UUID) -> PromoCode:
        return self.promo_repo.set_active(self._get_or_raise(promo_code_id), False)

    def delete(self, promo_code_id: UUID, now: datetime | None = None) -> None:
        """Soft delete a promo code; its usage ledger is kept."""
        promo_code = self._get_or_raise(promo_code_id)
        self.promo_repo.soft_delete(promo_code, now or datetime.now(UTC))
        logger.info("Deleted promo code %s", promo_code.code)

    def get_usage_summary(
        self, promo_code_id: UUID, user_id: UUID | None = None
    ) -> PromoCodeUsageSummary:
        promo_code = self._get_or_raise(promo_code_id)
        total_uses = self.promo_repo.get_usage_count(promo_code_id)
        _, total_discount = self.usage_repo.get_promo_usage_totals(promo_code_id)

        remaining = None
        if promo_code.max_total_usage is not None:
            remaining = max(0, int(promo_code.max_total_usage) - total_uses)

        user_uses = None
        user_remaining = None
        if user_id is not None:
            user_uses = self.usage_repo.count_promo_usage_for_user(promo_code_id, user_id)
            if promo_code.max_usage_per_user is not None:
                user_remaining = max(0, int(promo_code.max_usage_per_user) - user_uses)

        return PromoCodeUsageSummary(
            code=str(promo_code.code),
            total_uses=total_uses,
            max_total_usage=promo_code.max_total_usage,  # type: ignore[arg-type]
            remaining_uses=remaining,
            user_uses=user_uses,
            user_remaining_uses=user_remaining,
            total_discount_given=quantize_money(total_discount),
        )
