"""Order API tests."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from storefront.main import app
from storefront.services.usage_accountant import UsageAccountant
from tests.conftest import OPEN_END, OPEN_START, OTHER_USER_ID, USER_ID


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def product(make_product, make_shipping_config):
    make_shipping_config()
    return make_product(market_price="1000", stock_quantity=5)


@pytest.fixture
def event(make_event):
    return make_event(start=OPEN_START, end=OPEN_END, max_usage_count=1)


def fill_cart(client: TestClient, product_id, quantity: int = 2) -> None:
    response = client.post(
        "/v1/cart/items",
        json={"user_id": str(USER_ID), "product_id": str(product_id), "quantity": quantity},
    )
    assert response.status_code == 201, response.text


def place_order(client: TestClient, **fields) -> dict:
    response = client.post("/v1/orders/", json={"user_id": str(USER_ID), **fields})
    assert response.status_code == 201, response.text
    return response.json()


class TestPlaceOrderAPI:
    def test_place_order(self, client: TestClient, product, event):
        fill_cart(client, product.id)

        data = place_order(client)

        assert data["status"] == "pending"
        assert data["usage_status"] == "pending"
        assert Decimal(data["final_subtotal"]) == Decimal("1800")
        assert Decimal(data["shipping_cost"]) == Decimal("100")
        assert Decimal(data["total_amount"]) == Decimal("1900")
        assert client.get(f"/v1/cart/{USER_ID}/items").json() == []

    def test_get_order_with_items(self, client: TestClient, product, event):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]

        response = client.get(f"/v1/orders/{order_id}")

        assert response.status_code == 200
        (item,) = response.json()["items"]
        assert item["product_id"] == str(product.id)
        assert item["applied_event_id"] == str(event.id)
        assert Decimal(item["reserved_price"]) == Decimal("1800")

    def test_empty_cart(self, client: TestClient, product):
        response = client.post("/v1/orders/", json={"user_id": str(USER_ID)})
        assert response.status_code == 400
        assert response.json()["detail"] == ["Cart is empty"]

    def test_total_above_acceptable(self, client: TestClient, product, event):
        fill_cart(client, product.id)
        response = client.post(
            "/v1/orders/", json={"user_id": str(USER_ID), "max_acceptable_total": "1500"}
        )
        assert response.status_code == 400
        (reason,) = response.json()["detail"]
        assert reason.startswith("Order total has changed to Rs.1,900")

    def test_invalid_promo_code(self, client: TestClient, product):
        fill_cart(client, product.id)
        response = client.post(
            "/v1/orders/", json={"user_id": str(USER_ID), "promo_code": "NOPE"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == ["Invalid promo code"]

    def test_order_not_found(self, client: TestClient):
        assert client.get(f"/v1/orders/{uuid4()}").status_code == 404


class TestConfirmOrderAPI:
    def test_confirm(self, client: TestClient, product, event):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]

        response = client.post(f"/v1/orders/{order_id}/confirm")

        assert response.status_code == 200
        data = response.json()
        assert data["usage_status"] == "accounted"
        assert data["recorded"] == 1

        again = client.post(f"/v1/orders/{order_id}/confirm").json()
        assert again["recorded"] == 0
        assert again["already_recorded"] == 1

    def test_exhausted_promotion(self, client: TestClient, db_session, product, event):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]
        UsageAccountant(db_session).record_event_usage(
            event.id, OTHER_USER_ID, uuid4(), Decimal("10")
        )

        response = client.post(f"/v1/orders/{order_id}/confirm")

        assert response.status_code == 409
        assert response.json()["detail"] == "Promotion was exhausted moments ago"

    def test_cancelled_order(self, client: TestClient, product, event):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]
        client.post(f"/v1/orders/{order_id}/cancel")

        response = client.post(f"/v1/orders/{order_id}/confirm")

        assert response.status_code == 400

    def test_not_found(self, client: TestClient):
        assert client.post(f"/v1/orders/{uuid4()}/confirm").status_code == 404


class TestCancelOrderAPI:
    def test_cancel_reverses_usage(self, client: TestClient, db_session, product, event):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]
        client.post(f"/v1/orders/{order_id}/confirm")

        response = client.post(f"/v1/orders/{order_id}/cancel")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["usage_status"] == "reversed"
        assert data["reversal_queued"] is False
        db_session.refresh(event)
        db_session.refresh(product)
        assert event.current_usage_count == 0
        assert product.stock_quantity == 5

    def test_failed_reversal_is_queued(self, client: TestClient, product, event):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]
        client.post(f"/v1/orders/{order_id}/confirm")

        with (
            patch(
                "storefront.services.usage_accountant.UsageAccountant.reverse_usage",
                side_effect=OperationalError("UPDATE", {}, Exception("locked")),
            ),
            patch(
                "storefront.routers.orders.enqueue_reverse_order_usage",
                new_callable=AsyncMock,
            ) as mock_enqueue,
        ):
            response = client.post(f"/v1/orders/{order_id}/cancel")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["usage_status"] == "reversal_pending"
        assert data["reversal_queued"] is True
        mock_enqueue.assert_called_once_with(order_id)

    def test_enqueue_failure_does_not_fail_cancellation(
        self, client: TestClient, product, event
    ):
        fill_cart(client, product.id)
        order_id = place_order(client)["id"]
        client.post(f"/v1/orders/{order_id}/confirm")

        with (
            patch(
                "storefront.services.usage_accountant.UsageAccountant.reverse_usage",
                side_effect=OperationalError("UPDATE", {}, Exception("locked")),
            ),
            patch(
                "storefront.routers.orders.enqueue_reverse_order_usage",
                new_callable=AsyncMock,
                side_effect=ConnectionError("redis down"),
            ),
        ):
            response = client.post(f"/v1/orders/{order_id}/cancel")

        assert response.status_code == 200
        assert response.json()["reversal_queued"] is True

    def test_not_found(self, client: TestClient):
        assert client.post(f"/v1/orders/{uuid4()}/cancel").status_code == 404
