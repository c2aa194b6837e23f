"""Tests for order placement and order usage accounting."""

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from storefront.core.exceptions import (
    CheckoutError,
    ConcurrencyConflictError,
    NotFoundError,
)
from storefront.models.order import Order, OrderItem, OrderStatus, UsageStatus
from storefront.models.promotion_event import RuleTargetType
from storefront.models.usage import EventUsage, PromoCodeUsage
from storefront.schemas.order import PlaceOrderRequest
from storefront.schemas.promotion_event import EventRuleCreate
from storefront.services.order_service import OrderService, order_promotions
from storefront.services.usage_accountant import PromotionKind, UsageAccountant
from tests.conftest import NOW, OTHER_USER_ID, USER_ID

CATEGORY_ID = uuid4()


@pytest.fixture
def service(db_session, null_cache):
    return OrderService(db_session, null_cache)


@pytest.fixture
def example_cart(make_product, make_event, make_shipping_config, add_to_cart):
    product_a = make_product(market_price="1000", category_id=CATEGORY_ID, stock_quantity=5)
    product_b = make_product(market_price="500", stock_quantity=5)
    event = make_event(
        rules=[EventRuleCreate(target_type=RuleTargetType.CATEGORY, target_value=str(CATEGORY_ID))],
    )
    make_shipping_config()
    add_to_cart(product_a)
    add_to_cart(product_b, quantity=2)
    return product_a, product_b, event


def place(service, **fields):
    return service.place_order(PlaceOrderRequest(user_id=USER_ID, **fields), NOW)


class TestOrderPromotions:
    def test_groups_event_discounts_and_adds_promo_code(self):
        event_id, promo_id = uuid4(), uuid4()
        order = Order(
            applied_promo_code_id=promo_id,
            promo_discount_total=Decimal("140"),
            shipping_discount=Decimal("0"),
        )
        items = [
            OrderItem(applied_event_id=event_id, event_discount_amount=Decimal("100")),
            OrderItem(applied_event_id=event_id, event_discount_amount=Decimal("50")),
            OrderItem(applied_event_id=None, event_discount_amount=Decimal("0")),
        ]

        promotions = order_promotions(order, items)

        assert [(ref.kind, ref.id, amount) for ref, amount in promotions] == [
            (PromotionKind.EVENT, event_id, Decimal("150.00")),
            (PromotionKind.PROMO_CODE, promo_id, Decimal("140.00")),
        ]

    def test_no_promotions(self):
        order = Order(applied_promo_code_id=None)
        assert order_promotions(order, [OrderItem(applied_event_id=None)]) == []


class TestPlaceOrder:
    def test_freezes_pricing(self, service, db_session, example_cart, make_promo_code):
        product_a, product_b, event = example_cart
        promo = make_promo_code(code="SAVE10")

        order = place(service, promo_code="SAVE10")

        assert order.status == OrderStatus.PENDING.value
        assert order.usage_status == UsageStatus.PENDING.value
        assert order.original_subtotal == Decimal("2000.00")
        assert order.event_discount_total == Decimal("100.00")
        assert order.promo_discount_total == Decimal("190.00")
        assert order.final_subtotal == Decimal("1710.00")
        assert order.shipping_cost == Decimal("100.00")
        assert order.total_amount == Decimal("1810.00")
        assert order.applied_promo_code_id == promo.id

        items = {item.product_id: item for item in service.order_repo.get_items(order.id)}
        assert items[product_a.id].applied_event_id == event.id
        assert items[product_a.id].reserved_price == Decimal("810.00")
        assert items[product_b.id].quantity == 2
        assert items[product_b.id].reserved_price == Decimal("900.00")

        db_session.refresh(product_a)
        db_session.refresh(product_b)
        assert product_a.stock_quantity == 4
        assert product_b.stock_quantity == 3
        assert service.cart_repo.get_for_user(USER_ID) == []

    def test_usage_is_not_recorded_on_placement(self, service, db_session, example_cart):
        _, _, event = example_cart
        place(service)
        db_session.refresh(event)
        assert event.current_usage_count == 0
        assert db_session.query(EventUsage).count() == 0

    def test_order_without_promotions(
        self, service, make_product, make_shipping_config, add_to_cart
    ):
        make_shipping_config()
        add_to_cart(make_product())
        order = place(service)
        assert order.usage_status == UsageStatus.NONE.value

    def test_blocked_checkout(
        self, service, make_product, make_shipping_config, add_to_cart
    ):
        make_shipping_config()
        add_to_cart(make_product(name="Prayer Flag", stock_quantity=0))
        with pytest.raises(CheckoutError) as exc_info:
            place(service)
        assert exc_info.value.reasons == ["Prayer Flag is out of stock"]

    def test_empty_cart(self, service, make_shipping_config):
        make_shipping_config()
        with pytest.raises(CheckoutError, match="Cart is empty"):
            place(service)

    def test_invalid_promo_code(self, service, example_cart):
        with pytest.raises(CheckoutError) as exc_info:
            place(service, promo_code="NOPE")
        assert exc_info.value.reasons == ["Invalid promo code"]
        assert len(service.cart_repo.get_for_user(USER_ID)) == 2

    def test_total_moved_above_acceptable(self, service, example_cart):
        with pytest.raises(CheckoutError, match="Order total has changed to Rs.2,000"):
            place(service, max_acceptable_total=Decimal("1999.99"))

    def test_total_within_acceptable(self, service, example_cart):
        order = place(service, max_acceptable_total=Decimal("2000"))
        assert order.total_amount == Decimal("2000.00")


class TestConfirmOrderUsage:
    def test_records_every_promotion(self, service, db_session, example_cart, make_promo_code):
        _, _, event = example_cart
        promo = make_promo_code(code="SAVE10")
        order = place(service, promo_code="SAVE10")

        confirmation = service.confirm_order_usage(order.id, NOW)

        assert confirmation.usage_status == UsageStatus.ACCOUNTED.value
        assert confirmation.recorded == 2
        assert confirmation.already_recorded == 0
        order = service.get_order(order.id)
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.confirmed_at is not None
        db_session.refresh(event)
        db_session.refresh(promo)
        assert event.current_usage_count == 1
        assert promo.current_usage_count == 1
        assert db_session.query(EventUsage).one().discount_amount == Decimal("100.00")
        assert db_session.query(PromoCodeUsage).one().discount_amount == Decimal("190.00")

    def test_repeat_confirmation_is_a_no_op(self, service, db_session, example_cart):
        _, _, event = example_cart
        order = place(service)
        service.confirm_order_usage(order.id, NOW)

        again = service.confirm_order_usage(order.id, NOW)

        assert again.recorded == 0
        assert again.already_recorded == 1
        db_session.refresh(event)
        assert event.current_usage_count == 1

    def test_order_without_promotions(
        self, service, make_product, make_shipping_config, add_to_cart
    ):
        make_shipping_config()
        add_to_cart(make_product())
        order = place(service)
        confirmation = service.confirm_order_usage(order.id, NOW)
        assert confirmation.usage_status == UsageStatus.NONE.value
        assert service.get_order(order.id).status == OrderStatus.CONFIRMED.value

    def test_exhausted_before_anything_recorded(
        self, service, db_session, make_product, make_event, make_shipping_config, add_to_cart
    ):
        event = make_event(max_usage_count=1)
        make_shipping_config()
        add_to_cart(make_product())
        order = place(service)
        UsageAccountant(db_session).record_event_usage(
            event.id, OTHER_USER_ID, uuid4(), Decimal("10")
        )

        with pytest.raises(ConcurrencyConflictError):
            service.confirm_order_usage(order.id, NOW)

        order = service.get_order(order.id)
        assert order.usage_status == UsageStatus.PENDING.value
        assert order.status == OrderStatus.PENDING.value

    def test_partial_failure_is_reconciled(self, service, db_session, example_cart, make_promo_code):
        _, _, event = example_cart
        promo = make_promo_code(code="SAVE10", max_total_usage=1)
        order = place(service, promo_code="SAVE10")
        accountant = UsageAccountant(db_session)
        other_order = uuid4()
        accountant.record_promo_code_usage(promo.id, OTHER_USER_ID, other_order, Decimal("10"))

        with pytest.raises(ConcurrencyConflictError):
            service.confirm_order_usage(order.id, NOW)

        assert service.get_order(order.id).usage_status == UsageStatus.PARTIAL.value
        db_session.refresh(event)
        assert event.current_usage_count == 1

        # Nothing to reconcile while the code stays exhausted
        assert service.reconcile_partial_orders() == 0

        accountant.reverse_usage(other_order, NOW)
        assert service.reconcile_partial_orders() == 1

        order = service.get_order(order.id)
        assert order.usage_status == UsageStatus.ACCOUNTED.value
        assert order.status == OrderStatus.CONFIRMED.value
        db_session.refresh(event)
        assert event.current_usage_count == 1

    def test_cancelled_order_cannot_be_confirmed(self, service, example_cart):
        order = place(service)
        service.cancel_order(order.id, NOW)
        with pytest.raises(ValueError, match="Cancelled"):
            service.confirm_order_usage(order.id, NOW)

    def test_unknown_order(self, service):
        with pytest.raises(NotFoundError):
            service.confirm_order_usage(uuid4(), NOW)


class TestCancelOrder:
    def test_reverses_usage_and_restores_stock(self, service, db_session, example_cart):
        product_a, _, event = example_cart
        order = place(service)
        service.confirm_order_usage(order.id, NOW)

        result = service.cancel_order(order.id, NOW)

        assert result.status == OrderStatus.CANCELLED.value
        assert result.usage_status == UsageStatus.REVERSED.value
        assert not result.reversal_queued
        db_session.refresh(event)
        db_session.refresh(product_a)
        assert event.current_usage_count == 0
        assert product_a.stock_quantity == 5
        assert db_session.query(EventUsage).one().is_voided

    def test_unconfirmed_order(self, service, example_cart):
        order = place(service)
        result = service.cancel_order(order.id, NOW)
        assert result.usage_status == UsageStatus.NONE.value

    def test_cancel_is_idempotent(self, service, db_session, example_cart):
        product_a, _, _ = example_cart
        order = place(service)
        service.cancel_order(order.id, NOW)

        again = service.cancel_order(order.id, NOW)

        assert again.status == OrderStatus.CANCELLED.value
        db_session.refresh(product_a)
        assert product_a.stock_quantity == 5

    def test_failed_reversal_is_retried(self, service, db_session, example_cart):
        _, _, event = example_cart
        order = place(service)
        service.confirm_order_usage(order.id, NOW)

        with patch.object(
            service.accountant,
            "reverse_usage",
            side_effect=OperationalError("UPDATE", {}, Exception("locked")),
        ):
            result = service.cancel_order(order.id, NOW)

        assert result.status == OrderStatus.CANCELLED.value
        assert result.usage_status == UsageStatus.REVERSAL_PENDING.value
        assert result.reversal_queued
        db_session.refresh(event)
        assert event.current_usage_count == 1

        assert service.retry_pending_reversals() == 1
        assert service.get_order(order.id).usage_status == UsageStatus.REVERSED.value
        db_session.refresh(event)
        assert event.current_usage_count == 0
        assert service.retry_reversal(order.id) is False

    def test_retry_that_fails_again(self, service, example_cart):
        order = place(service)
        service.confirm_order_usage(order.id, NOW)
        with patch.object(service.accountant, "reverse_usage", side_effect=RuntimeError("down")):
            service.cancel_order(order.id, NOW)
            assert service.retry_reversal(order.id) is False
        assert service.get_order(order.id).usage_status == UsageStatus.REVERSAL_PENDING.value

    def test_unknown_order(self, service):
        with pytest.raises(NotFoundError):
            service.cancel_order(uuid4(), NOW)
