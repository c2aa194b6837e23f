"""Event discount calculation for a resolved event match."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from storefront.models.promotion_event import PromotionType
from storefront.services.discounts import (
    ZERO,
    FixedAmountDiscount,
    PercentageDiscount,
    format_rupees,
    quantize_money,
    to_decimal,
)
from storefront.services.event_eligibility import EventMatch

logger = logging.getLogger(__name__)


@dataclass
class EventTerms:
    """Discount terms after rule and direct-product overrides."""

    discount: PercentageDiscount | FixedAmountDiscount
    min_order_value: Decimal | None


@dataclass
class EventDiscountResult:
    event_id: UUID
    event_name: str
    rule_id: UUID | None
    unit_discount: Decimal
    discount_amount: Decimal
    is_applied: bool
    note: str | None = None


def effective_terms(match: EventMatch) -> EventTerms:
    """Resolve the discount terms for a match.

    Unset rule terms fall back to the event's. A direct product link with a
    specific discount overrides the discount value.
    """
    event = match.event
    rule = match.rule

    promotion_type = (rule.promotion_type if rule and rule.promotion_type else None) or (
        event.promotion_type
    )
    value = to_decimal(rule.discount_value) if rule and rule.discount_value is not None else None
    if value is None:
        value = to_decimal(event.discount_value)
    if match.event_product is not None and match.event_product.specific_discount is not None:
        value = to_decimal(match.event_product.specific_discount)

    cap = rule.max_discount_amount if rule and rule.max_discount_amount is not None else None
    if cap is None:
        cap = event.max_discount_amount
    min_order = rule.min_order_value if rule and rule.min_order_value is not None else None
    if min_order is None:
        min_order = event.min_order_value

    discount: PercentageDiscount | FixedAmountDiscount
    if promotion_type == PromotionType.PERCENTAGE.value:
        discount = PercentageDiscount(rate=value or ZERO, cap=to_decimal(cap))
    else:
        discount = FixedAmountDiscount(amount=value or ZERO, cap=to_decimal(cap))
    return EventTerms(discount=discount, min_order_value=to_decimal(min_order))


def calculate_event_discount(
    match: EventMatch,
    unit_price: Decimal,
    quantity: int,
    order_subtotal: Decimal,
) -> EventDiscountResult:
    """Compute the line discount for a matched event.

    The discount is computed per unit, capped, and multiplied by quantity,
    so it never exceeds ``unit_price * quantity``. Below the minimum order
    value the event is eligible but gives nothing.
    """
    terms = effective_terms(match)
    rule_id = match.rule.id if match.rule else None

    if terms.min_order_value is not None and order_subtotal < terms.min_order_value:
        return EventDiscountResult(
            event_id=match.event.id,
            event_name=match.event.name,
            rule_id=rule_id,
            unit_discount=ZERO,
            discount_amount=ZERO,
            is_applied=False,
            note=f"Minimum order of {format_rupees(terms.min_order_value)} required for "
            f"{match.event.name}",
        )

    if isinstance(terms.discount, PercentageDiscount) and not terms.discount.is_valid:
        logger.warning(
            "Event %s has an out-of-range percentage %s; no discount applied",
            match.event.id,
            terms.discount.rate,
        )

    unit_discount = terms.discount.amount_for(quantize_money(unit_price))
    line_discount = quantize_money(unit_discount * quantity)
    return EventDiscountResult(
        event_id=match.event.id,
        event_name=match.event.name,
        rule_id=rule_id,
        unit_discount=unit_discount,
        discount_amount=line_discount,
        is_applied=line_discount > 0,
    )
