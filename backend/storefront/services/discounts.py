"""Discount shapes and money arithmetic shared by events and promo codes.

Each discount kind is its own dataclass carrying only the fields it needs.
Money is ``Decimal`` rounded to paisa (0.01) with ROUND_HALF_UP.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_money(value: Any) -> Decimal:
    """Round a money amount to paisa."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def format_rupees(amount: Any) -> str:
    """Format an amount as ``Rs.1,500`` or ``Rs.99.50``."""
    value = quantize_money(amount)
    if value == value.to_integral_value():
        return f"Rs.{value:,.0f}"
    return f"Rs.{value:,.2f}"


def _apply_cap(amount: Decimal, cap: Decimal | None) -> Decimal:
    if cap is not None and cap > 0 and amount > cap:
        return cap
    return amount


@dataclass(frozen=True)
class PercentageDiscount:
    """Percentage off the price. Rates outside (0, 100] give no discount."""

    rate: Decimal
    cap: Decimal | None = None

    @property
    def is_valid(self) -> bool:
        return Decimal(0) < self.rate <= HUNDRED

    def amount_for(self, price: Decimal) -> Decimal:
        if not self.is_valid or price <= 0:
            return ZERO
        amount = quantize_money(price * self.rate / HUNDRED)
        return min(_apply_cap(amount, self.cap), quantize_money(price))

    def describe(self) -> str:
        return f"{self.rate.normalize():f}% OFF"


@dataclass(frozen=True)
class FixedAmountDiscount:
    """Flat amount off, never more than the price."""

    amount: Decimal
    cap: Decimal | None = None

    def amount_for(self, price: Decimal) -> Decimal:
        if self.amount <= 0 or price <= 0:
            return ZERO
        return min(_apply_cap(quantize_money(self.amount), self.cap), quantize_money(price))

    def describe(self) -> str:
        return f"{format_rupees(self.amount)} OFF"


@dataclass(frozen=True)
class FreeShippingDiscount:
    """Waives the computed shipping cost, optionally capped."""

    cap: Decimal | None = None

    def amount_for(self, shipping_cost: Decimal) -> Decimal:
        if shipping_cost <= 0:
            return ZERO
        return _apply_cap(quantize_money(shipping_cost), self.cap)

    def describe(self) -> str:
        return "FREE SHIPPING"


Discount = PercentageDiscount | FixedAmountDiscount | FreeShippingDiscount


def apportion(total: Decimal, weights: list[Decimal]) -> list[Decimal]:
    """Split ``total`` across ``weights`` proportionally, exact to the paisa.

    Uses the largest-remainder method on integer paisa so the shares always sum
    to ``total``. Ties on the remainder go to the earlier weight. A share never
    exceeds its weight as long as ``total`` does not exceed the sum of weights.

    Raises:
        ValueError: If a non-zero total is split across zero weight.
    """
    if not weights:
        if quantize_money(total) != ZERO:
            raise ValueError("Cannot apportion a non-zero amount across no items")
        return []

    total_units = int(quantize_money(total) * 100)
    weight_units = [max(0, int(quantize_money(w) * 100)) for w in weights]
    weight_sum = sum(weight_units)

    if weight_sum == 0:
        if total_units != 0:
            raise ValueError("Cannot apportion a non-zero amount across zero weight")
        return [ZERO for _ in weights]

    shares = []
    remainders = []
    for units in weight_units:
        share, remainder = divmod(total_units * units, weight_sum)
        shares.append(share)
        remainders.append(remainder)

    leftover = total_units - sum(shares)
    ranked = sorted(range(len(weights)), key=lambda i: (-remainders[i], i))
    for index in ranked[:leftover]:
        shares[index] += 1

    return [(Decimal(share) / 100).quantize(CENT) for share in shares]
